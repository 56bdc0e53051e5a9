#!/usr/bin/env python3
"""
Complete Pipeline Demo: Schema → Flow DSL → Schema → Analysis

Shows the full workflow:
1. Build the example inventory schema model
2. Decompile it into a flow file
3. Compile the project back into a schema model
4. Analyze the model
5. Write the schema JSON

Pass a directory to run the compile step over a real project instead:

    python demo_complete_pipeline.py path/to/project
"""

import logging
import sys

from flowschema.analyzer import analyze_model
from flowschema.examples import build_example_items_model
from flowschema.filestore import InMemoryFileStore, LocalFileStore
from flowschema.model import models_equal
from flowschema.orchestrator import compile_project, decompile_to_store, write_schema
from flowschema.serialization import model_to_yaml


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 80)
    print("COMPLETE PIPELINE DEMO: Schema → Flow DSL → Schema → Analysis")
    print("=" * 80)

    # =========================================================================
    # STEP 1: Build or locate the flows
    # =========================================================================
    if len(sys.argv) > 1:
        print(f"\n1. USING PROJECT {sys.argv[1]}...")
        store = LocalFileStore(sys.argv[1])
        original = None
    else:
        print("\n1. BUILDING EXAMPLE MODEL...")
        original = build_example_items_model()
        print(f"   ✓ Flows: {len(original.flows)}")
        print(f"   ✓ Messages: {len(original.messages)}")
        print(f"   ✓ Integrations: {len(original.integrations)}")

        # =====================================================================
        # STEP 2: Decompile
        # =====================================================================
        print("\n2. DECOMPILING TO FLOW SOURCE...")
        store = InMemoryFileStore()
        path = decompile_to_store(store, original, "flows/items.flow.ts")
        print(f"   ✓ Wrote {path}")
        print("-" * 80)
        lines = store.read(path).split("\n")
        for line in lines[:30]:
            print(f"   {line}")
        if len(lines) > 30:
            print(f"   ... ({len(lines) - 30} more lines)")
        print("-" * 80)

    # =========================================================================
    # STEP 3: Compile the project
    # =========================================================================
    print("\n3. COMPILING PROJECT...")
    result = compile_project(store, "flows")
    print(f"   ✓ Compiled files: {len(result.compiled)}")
    for failure in result.failures:
        print(f"   ✗ {failure}")
    if result.stopped_early:
        print(f"   ! Skipped {len(result.skipped)} file(s)")
    if original is not None:
        print(f"   ✓ Round trip preserved the model: {models_equal(result.model, original)}")

    # =========================================================================
    # STEP 4: Analyze
    # =========================================================================
    print("\n4. ANALYZING MODEL...")
    report = analyze_model(result.model)
    print(f"   ✓ Slices by kind: {report.slices_by_kind}")
    print(f"   ✓ GWT blocks: {report.total_gwt_blocks}")
    print(f"   ✓ Undefined references: {report.undefined_references or 'none'}")
    print(f"   ✓ Unused integrations: {report.unused_integrations or 'none'}")

    if report.warnings:
        print(f"\n   Warnings ({len(report.warnings)}):")
        for warning in report.warnings[:5]:  # Show first 5
            print(f"      - {warning}")
        if len(report.warnings) > 5:
            print(f"      ... and {len(report.warnings) - 5} more")

    # =========================================================================
    # STEP 5: Write the schema
    # =========================================================================
    print("\n5. WRITING SCHEMA...")
    schema_path = write_schema(store, result.model)
    print(f"   ✓ Saved {schema_path}")
    print("\n   YAML view of the first message:")
    yaml_lines = model_to_yaml(result.model).split("\n")
    start = yaml_lines.index("messages:") if "messages:" in yaml_lines else 0
    for line in yaml_lines[start:start + 12]:
        print(f"   {line}")

    print("\n" + "=" * 80)
    print("PIPELINE COMPLETE!")
    print("=" * 80)


if __name__ == "__main__":
    main()
