# -*- coding: utf-8 -*-
"""
Command line interface.

Usage:
    blocksync signature BASIS -o SIG [-b N] [--checksum NAME] [--workers N] [--json]
    blocksync delta SIG UPDATED -o DELTA [--compress NAME] [--json]
    blocksync patch BASIS DELTA -o RECREATED [--no-verify]
    blocksync report DIR [-b N ...]
    blocksync benchmark [--size MB] [-b N] [--pattern P] [--seed S]

Exit status is 0 on success, the error's code for blocksync errors and
130 when interrupted.
"""

from __future__ import annotations

import argparse
import os
import random
import sys
import time
from typing import Any, Callable, Dict, List, Optional

from . import __version__
from .checksum import ChecksumType
from .compression import CompressionType
from .config import Config, DEFAULT_BLOCK_SIZE, configure_logging
from .engine import SyncEngine, gather_cases, run_case
from .errors import BlockSyncError, InvalidConfigError
from .utils import Colors, format_size, format_time

BENCHMARK_PATTERNS = ('flip-middle', 'append', 'prepend', 'insert-middle')


def cli_signature(args: Any) -> int:
    """Generate signature file for a basis file."""
    start_time = time.time()

    if not args.quiet:
        print(Colors.info(f"Generating signature for: {Colors.bold(args.basis)}"))
        print(f"  Block size: {args.block_size:,} bytes")

    if not os.path.isfile(args.basis):
        print(Colors.error(f"Input file not found: {args.basis}"), file=sys.stderr)
        return 1

    engine = SyncEngine(block_size=args.block_size, checksum_type=args.checksum,
                        workers=args.workers)
    signature = engine.signature_file(args.basis, args.output, as_json=args.json)

    elapsed = time.time() - start_time
    if not args.quiet:
        print(f"\n{Colors.success(f'Signature saved to: {args.output}')}")
        print(f"  Format:       {'JSON' if args.json else 'binary'}")
        print(f"  File size:    {signature.file_size:,} bytes")
        print(f"  Blocks:       {signature.num_blocks:,}")
        print(f"  Checksum:     {signature.checksum_type}")
        print(f"  Time:         {format_time(elapsed)}")
    return 0


def cli_delta(args: Any) -> int:
    """Generate delta between a signature and an updated file."""
    start_time = time.time()

    if not args.quiet:
        print("Generating delta:")
        print(f"  Signature: {args.signature}")
        print(f"  Updated file: {args.updated}")

    for path, what in ((args.signature, "Signature file"), (args.updated, "Input file")):
        if not os.path.isfile(path):
            print(Colors.error(f"{what} not found: {path}"), file=sys.stderr)
            return 1

    engine = SyncEngine(compression=args.compress)
    delta = engine.delta_file(args.signature, args.updated, args.output, as_json=args.json)

    elapsed = time.time() - start_time
    if not args.quiet:
        print(f"\n{Colors.success(f'Delta saved to: {args.output}')}")
        print(f"  Copies:       {delta.num_copies:,}")
        print(f"  Literals:     {delta.num_literals:,} ({format_size(delta.literal_bytes)})")
        print(f"  Reused:       {delta.compression_ratio:.1%}")
        print(f"  Delta size:   {format_size(os.path.getsize(args.output))}")
        print(f"  Time:         {format_time(elapsed)}")
    return 0


def cli_patch(args: Any) -> int:
    """Apply a delta to a basis file."""
    start_time = time.time()

    if not args.quiet:
        print("Applying delta:")
        print(f"  Basis: {args.basis}")
        print(f"  Delta: {args.delta}")

    for path, what in ((args.basis, "Basis file"), (args.delta, "Delta file")):
        if not os.path.isfile(path):
            print(Colors.error(f"{what} not found: {path}"), file=sys.stderr)
            return 1

    engine = SyncEngine()
    written = engine.patch_file(args.basis, args.delta, args.output,
                                verify=False if args.no_verify else None)

    elapsed = time.time() - start_time
    if not args.quiet:
        print(f"\n{Colors.success(f'File reconstructed: {args.output}')}")
        print(f"  Size:         {written:,} bytes")
        print(f"  Time:         {format_time(elapsed)}")
    return 0


def cli_report(args: Any) -> int:
    """Run every sync case below a directory and report correctness and efficiency."""
    cases = gather_cases(args.directory)
    if not cases:
        print(Colors.warning(f"No sync cases found under {args.directory}"), file=sys.stderr)
        return 1

    failures = 0
    for case in cases:
        if not args.quiet:
            print(Colors.bold(case.name))
        for block_size in args.block_size:
            result = run_case(case, block_size=block_size, compression=args.compress)
            report = result.report
            if not result.exact:
                failures += 1
            if args.quiet:
                continue
            status = Colors.success("exact") if result.exact else Colors.error("MISMATCH")
            print(
                f"  block {block_size:>6}: {status}  "
                f"sig {format_size(report.signature_size)}, delta {format_size(report.delta_size)}, "
                f"efficiency {report.efficiency:.3f}  ({format_time(result.elapsed)})"
            )

    if failures:
        print(Colors.error(f"{failures} reconstruction(s) differ from updated_file"), file=sys.stderr)
        return 1
    if not args.quiet:
        print(Colors.success(f"All {len(cases)} case(s) reconstructed exactly"))
    return 0


def cli_benchmark(args: Any) -> int:
    """Run performance benchmarks."""
    size_bytes = int(args.size * 1024 * 1024)
    block_size = args.block_size
    pattern = args.pattern
    rng = random.Random(args.seed)

    def _rand_bytes(n: int) -> bytes:
        return rng.randbytes(n)

    if not args.quiet:
        print(Colors.bold(f"\n{'=' * 60}"))
        print(Colors.bold("  blocksync Performance Benchmark".center(60)))
        print(Colors.bold(f"{'=' * 60}\n"))
        print(f"Test file size: {format_size(size_bytes)}")
        print(f"Block size: {block_size:,} bytes")
        print(f"Pattern: {pattern}")
        print()

    original = _rand_bytes(size_bytes)
    change_size = max(1, int(size_bytes * (args.change_pct / 100.0)))
    if pattern == 'flip-middle':
        change_start = max(0, (size_bytes - change_size) // 2)
        modified = bytearray(original)
        for i in range(change_start, min(size_bytes, change_start + change_size)):
            modified[i] = (modified[i] + 1) % 256
        updated = bytes(modified)
    elif pattern == 'append':
        updated = original + _rand_bytes(change_size)
    elif pattern == 'prepend':
        updated = _rand_bytes(change_size) + original
    elif pattern == 'insert-middle':
        insert_at = size_bytes // 2
        updated = original[:insert_at] + _rand_bytes(change_size) + original[insert_at:]
    else:
        raise InvalidConfigError(f"Unknown benchmark pattern: {pattern}")

    engine = SyncEngine(block_size=block_size)
    timings: Dict[str, float] = {}

    start = time.perf_counter()
    signature = engine.compute_signature(original)
    timings['signature'] = time.perf_counter() - start

    start = time.perf_counter()
    delta = engine.compute_delta(signature, updated)
    timings['delta'] = time.perf_counter() - start

    start = time.perf_counter()
    recreated = engine.apply_delta(original, delta)
    timings['patch'] = time.perf_counter() - start

    correct = recreated == updated
    if not args.quiet:
        for name, elapsed in timings.items():
            rate = size_bytes / elapsed / 1024 / 1024 if elapsed > 0 else float('inf')
            print(f"  {name.capitalize():<10} {format_time(elapsed):>10} ({rate:.1f} MB/s)")
        print(f"  Blocks: {signature.num_blocks:,}")
        print(f"  Copies: {delta.num_copies:,}, Literals: {delta.num_literals:,}")
        print(f"  Reused: {delta.compression_ratio:.1%}")
        print(Colors.success("Verification: PASSED") if correct else Colors.error("Verification: FAILED"))
        total = sum(timings.values())
        print(f"\n{Colors.bold('Summary:')}")
        print(f"  Total time: {format_time(total)}")
        print(f"  Literal bytes to transfer: {delta.literal_bytes:,}")
    return 0 if correct else 1


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {number}")
    return number


def _common_options(suppress: bool) -> argparse.ArgumentParser:
    # Subcommands must not reset flags given before the command name
    default = argparse.SUPPRESS if suppress else False
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('-v', '--verbose', action='store_true', default=default, help='verbose logging')
    common.add_argument('-q', '--quiet', action='store_true', default=default,
                        help='suppress progress output')
    common.add_argument('--no-color', action='store_true', default=default,
                        help='disable colored output')
    return common


def build_parser() -> argparse.ArgumentParser:
    common = _common_options(suppress=True)

    parser = argparse.ArgumentParser(
        prog='blocksync',
        description='Block-level remote file synchronization (signature / delta / patch).',
        parents=[_common_options(suppress=False)],
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    sub = parser.add_subparsers(dest='command', metavar='COMMAND')
    sub.required = True

    p = sub.add_parser('signature', parents=[common], help='compute the signature of a basis file')
    p.add_argument('basis', help='basis file')
    p.add_argument('-o', '--output', required=True, help='signature output file')
    p.add_argument('-b', '--block-size', type=_positive_int, default=DEFAULT_BLOCK_SIZE,
                   help=f'block size in bytes (default: {DEFAULT_BLOCK_SIZE})')
    p.add_argument('--checksum', choices=[t.value for t in ChecksumType], default=None,
                   help='strong digest algorithm (default: md5)')
    p.add_argument('--workers', type=_positive_int, default=None, help='hashing threads')
    p.add_argument('--json', action='store_true', help='write JSON instead of binary')
    p.set_defaults(func=cli_signature)

    p = sub.add_parser('delta', parents=[common], help='compute a delta from a signature and an updated file')
    p.add_argument('signature', help='signature file (binary or JSON)')
    p.add_argument('updated', help='updated file')
    p.add_argument('-o', '--output', required=True, help='delta output file')
    p.add_argument('--compress', choices=[t.value for t in CompressionType], default=None,
                   help='compress the delta body (default: none)')
    p.add_argument('--json', action='store_true', help='write JSON instead of binary')
    p.set_defaults(func=cli_delta)

    p = sub.add_parser('patch', parents=[common], help='apply a delta to a basis file')
    p.add_argument('basis', help='basis file')
    p.add_argument('delta', help='delta file (binary or JSON)')
    p.add_argument('-o', '--output', required=True, help='reconstructed output file')
    p.add_argument('--no-verify', action='store_true', help='skip whole-file digest verification')
    p.set_defaults(func=cli_patch)

    p = sub.add_parser('report', parents=[common], help='run sync cases and report efficiency')
    p.add_argument('directory', help='directory containing basis_file / updated_file cases')
    p.add_argument('-b', '--block-size', type=_positive_int, nargs='+', default=[DEFAULT_BLOCK_SIZE],
                   help='block sizes to try')
    p.add_argument('--compress', choices=[t.value for t in CompressionType], default=None)
    p.set_defaults(func=cli_report)

    p = sub.add_parser('benchmark', parents=[common], help='run a synthetic performance benchmark')
    p.add_argument('--size', type=float, default=1.0, help='test file size in MB (default: 1)')
    p.add_argument('-b', '--block-size', type=_positive_int, default=DEFAULT_BLOCK_SIZE)
    p.add_argument('--pattern', choices=BENCHMARK_PATTERNS, default='flip-middle')
    p.add_argument('--change-pct', type=float, default=10.0, help='changed share in percent')
    p.add_argument('--seed', type=int, default=None)
    p.set_defaults(func=cli_benchmark)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    if args.no_color:
        Config.USE_COLORS = False

    func: Callable[[Any], int] = args.func
    try:
        return func(args)
    except BlockSyncError as e:
        print(Colors.error(f"{type(e).__name__}: {e}"), file=sys.stderr)
        return e.code
    except KeyboardInterrupt:
        print(Colors.warning("\nOperation cancelled by user"), file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
