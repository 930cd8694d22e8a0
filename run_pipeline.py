"""
Pipeline Runner
===============

Runs the complete pipeline (generate/repair → optional analysis) for one
prose description and writes every artifact to pipeline_outputs/<timestamp>.

    python run_pipeline.py "Create a token vault where users can deposit tokens."
    python run_pipeline.py --prompt-file idea.txt --analyze
"""

import json
import logging
import os
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, List, Optional

from api import PipelineServices
from pipeline_settings import load_settings


# ============================================================================
# CONFIGURATION - Edit these values to customize the pipeline
# ============================================================================

# Used when no description is given on the command line
USER_INPUT = """Create a rental NFT system where users can rent NFTs for a fixed duration."""

OUTPUT_ROOT = "pipeline_outputs"

# ============================================================================


def ensure(path: str):
    """Ensure directory exists"""
    os.makedirs(path, exist_ok=True)


def write_json(path: str, data: Any):
    with open(path, "w") as f:
        json.dump(data, f, indent=2)


def run_full_pipeline(
    user_input: str,
    services: PipelineServices,
    analyze: bool = False,
    output_root: str = OUTPUT_ROOT,
) -> Optional[Dict[str, Any]]:
    """
    Run complete pipeline: generation → analysis

    Args:
        user_input: Natural language description of contract
        services: Model, compiler and settings to run with
        analyze: Also document the contract and draw its diagrams
        output_root: Directory receiving the timestamped output folder

    Returns:
        Summary dictionary, or None when generation never compiled
    """
    print("\n" + "="*80)
    print("RUNNING FULL PIPELINE (Generation → " + ("Analysis)" if analyze else "Analysis skipped)"))
    print("="*80)
    print("\n📝 USER INPUT:")
    print(user_input)
    print("\n" + "-"*80)

    # Create output directory
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    outdir = os.path.join(output_root, timestamp)
    ensure(outdir)
    files: List[str] = []

    # ------------------------------------------------------------------
    # Generation: draft, compile, repair
    # ------------------------------------------------------------------
    print(f"\n[1/2] Generating contract (up to {services.settings.max_generation_attempts} attempts)...")
    print("-" * 80)
    result = services.generator().generate_contract(user_input)

    sol_path = os.path.join(outdir, "contract.sol")
    with open(sol_path, "w") as f:
        f.write(result.source)
    result_path = os.path.join(outdir, "result.json")
    write_json(result_path, {
        **result.to_dict(),
        "contractName": result.contract_name,
        "history": [a.to_dict() for a in result.history],
    })
    files += [sol_path, result_path]

    if not result.success:
        print(f"❌ Generation failed after {result.attempts_used} attempt(s)")
        print(f"\n🔴 Compiler errors ({len(result.errors)}):")
        for error in result.errors[:10]:
            print(f"   {error.render()}")
        print(f"\n📄 Last candidate saved: {sol_path}")
        return None

    print(f"✅ Compiled {result.contract_name} in {result.attempts_used} attempt(s)")
    print(f"   • ABI entries: {len(result.abi)}")
    print(f"   • Bytecode size: {len(result.bytecode) // 2} bytes")
    print(f"   • Warnings: {len(result.warnings)}")

    abi_path = os.path.join(outdir, "abi.json")
    write_json(abi_path, result.abi)
    files.append(abi_path)

    # Show contract preview
    lines = result.source.split('\n')
    print(f"\n📄 Contract Preview (first 20 lines):")
    for i, line in enumerate(lines[:20], 1):
        print(f"   {i:3d} | {line}")
    if len(lines) > 20:
        print(f"   ... ({len(lines) - 20} more lines)")

    # ------------------------------------------------------------------
    # Analysis: documentation and diagrams in batches
    # ------------------------------------------------------------------
    analysis = None
    if analyze:
        print("\n[2/2] Analyzing functions and drawing diagrams...")
        print("-" * 80)
        analysis = services.analyzer().analyze_contract(result.source, result.abi)

        analysis_path = os.path.join(outdir, "analysis.json")
        write_json(analysis_path, analysis.to_dict())
        files.append(analysis_path)

        functions = analysis.functions
        diagrams = analysis.diagrams
        print(f"\n📊 Analysis Summary:")
        print(f"   • Functions documented: {len(functions.function_analyses)}/{len(functions.requested_names)}")
        print(f"   • Failed batches: {len(functions.failed_batches)}/{functions.total_batches}")
        print(f"   • General diagram: {'yes' if diagrams.general_diagram else 'no'}")
        print(f"   • Function diagrams: {len(diagrams.function_diagrams)}")
    else:
        print("\n[2/2] Analysis: Skipped")

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------
    print("\n" + "="*80)
    print("✅ PIPELINE COMPLETE")
    print("="*80)
    print(f"\n📁 All outputs saved in: {outdir}")
    print(f"\n📋 Files generated:")
    for path in files:
        print(f"   • {os.path.basename(path)}")

    return {
        "output_dir": outdir,
        "result": result,
        "analysis": analysis,
    }


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(
        description="Generate a compiling Solidity contract from a description",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Use USER_INPUT variable from file (default)
  python run_pipeline.py

  # Override with command-line input and document the result
  python run_pipeline.py "Create a token vault" --analyze
        """
    )
    parser.add_argument("prompt", nargs="?", help="Contract description (overrides USER_INPUT)")
    parser.add_argument("--prompt-file", "-f", type=str, help="Read the description from a file")
    parser.add_argument("--analyze", action="store_true", help="Document functions and draw diagrams")
    parser.add_argument("--config", type=str, help="YAML settings file")
    parser.add_argument("--output-dir", type=str, default=OUTPUT_ROOT, help="Output root directory")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.prompt_file:
            with open(args.prompt_file) as f:
                user_input = f.read()
            source = f"file {args.prompt_file}"
        elif args.prompt:
            user_input = args.prompt
            source = "command-line"
        else:
            user_input = USER_INPUT
            source = "USER_INPUT variable"

        if not user_input or not user_input.strip():
            print("❌ Contract description is empty.")
            print("   Use: python run_pipeline.py 'Your description'")
            sys.exit(1)

        print("\n" + "="*80)
        print("SMART CONTRACT PIPELINE")
        print("="*80)
        print(f"\n📝 Input (from {source}): {user_input.strip()}")

        settings = load_settings(args.config)
        print(f"\n⚙️  Config:")
        print(f"   • Model: {settings.model}")
        print(f"   • Solc: {settings.solc_version}")
        print(f"   • Analysis: {args.analyze}")

        services = PipelineServices.from_settings(settings)
        result = run_full_pipeline(user_input.strip(), services, analyze=args.analyze, output_root=args.output_dir)

        if result:
            print("\n" + "="*80)
            print("✅ Pipeline completed successfully!")
            print(f"📄 Generated contract: {result['output_dir']}/contract.sol")
            print("="*80)
        else:
            print("\n❌ Pipeline failed. Check errors above.")
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\n⚠️  Pipeline cancelled by user")
        sys.exit(0)
    except Exception as e:
        print(f"\n❌ Unexpected error: {e}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
