"""Command-line interface for nahan."""

from __future__ import annotations

import argparse
import sys

from .cover import calculate_stealth_ratio, get_recommended_cover
from .log import setup_logging
from .provider import DecodeMode
from .registry import default_registry
from .utils import StegoError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nahan",
        description="Hide data in ordinary-looking text.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="print diagnostics to stderr"
    )
    parser.add_argument(
        "--log-level", default=None, help="logging level (default: NAHAN_LOG_LEVEL or WARNING)"
    )

    sub = parser.add_subparsers(dest="command")

    # -- algorithms ----------------------------------------------------
    sub.add_parser("algorithms", help="list available algorithms")

    # -- capacity ------------------------------------------------------
    cap = sub.add_parser("capacity", help="show how much a cover text can carry")
    cap.add_argument("algorithm", help="algorithm id, e.g. NH04")
    _add_cover_args(cap)

    # -- cover ---------------------------------------------------------
    cov = sub.add_parser("cover", help="suggest a poem to hide a payload in")
    cov.add_argument("size", type=int, help="payload size in bytes")
    cov.add_argument(
        "-l", "--language", default="fa", choices=["fa", "en"], help="poem language"
    )

    # -- encode --------------------------------------------------------
    enc = sub.add_parser("encode", help="hide data in a cover text")
    enc.add_argument("algorithm", help="algorithm id, e.g. NH06")
    enc.add_argument("text", nargs="?", default=None, help="string to hide")
    enc.add_argument("-f", "--file", default=None, help="file to hide")
    enc.add_argument("-o", "--output", default=None, help="write stego text to file")
    _add_cover_args(enc)

    # -- decode --------------------------------------------------------
    dec = sub.add_parser("decode", help="recover data from stego text")
    dec.add_argument("text", nargs="?", default=None, help="stego text to decode")
    dec.add_argument(
        "-a", "--algorithm", default=None, help="algorithm id (default: auto-detect)"
    )
    dec.add_argument("-f", "--file", default=None, help="file containing stego text")
    dec.add_argument("-o", "--output", default=None, help="write decoded bytes to file")
    dec.add_argument(
        "--lenient", action="store_true", help="tolerate lost invisible characters"
    )

    return parser


def _add_cover_args(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-c", "--cover", default=None, help="cover text")
    group.add_argument("--cover-file", default=None, help="file containing cover text")


def _log(msg: str) -> None:
    print(msg, file=sys.stderr)


def _read_input(args: argparse.Namespace) -> str | bytes:
    """Return the user-supplied input as str (for decode) or bytes (for encode -f)."""
    if args.text is not None:
        return args.text
    if args.file is not None:
        if args.command == "encode":
            with open(args.file, "rb") as fh:
                return fh.read()
        with open(args.file, encoding="utf-8") as fh:
            return fh.read()
    # stdin
    if not sys.stdin.isatty():
        if args.command == "encode":
            return sys.stdin.buffer.read()
        return sys.stdin.read()
    print(f"nahan {args.command}: no input (pass a string, -f FILE, or pipe stdin)", file=sys.stderr)
    sys.exit(1)


def _read_cover(args: argparse.Namespace) -> str | None:
    if args.cover_file is not None:
        with open(args.cover_file, encoding="utf-8") as fh:
            return fh.read()
    return args.cover


def _cmd_algorithms(args: argparse.Namespace) -> None:
    for provider in default_registry().get_all_providers():
        meta = provider.metadata
        flags = []
        if meta.requires_cover_text:
            flags.append("cover")
        if meta.supports_auto_detect:
            flags.append("auto-detect")
        print(
            f"{meta.id.value}  {meta.name:<18} stealth={meta.stealth_level} "
            f"platform={meta.platform.value:<9} {','.join(flags)}"
        )


def _cmd_capacity(args: argparse.Namespace) -> None:
    provider = default_registry().get_provider(args.algorithm)
    cover = _read_cover(args)
    print(f"capacity: {provider.capacity(cover)} bytes")
    print(f"max payload: {provider.max_payload_size(cover)} bytes")


def _cmd_cover(args: argparse.Namespace) -> None:
    cover = get_recommended_cover(args.size, args.language)
    print(cover)
    _log(f"stealth: {calculate_stealth_ratio(args.size, cover)}%")


def _cmd_encode(args: argparse.Namespace, verbose: bool) -> None:
    provider = default_registry().get_provider(args.algorithm)
    raw = _read_input(args)
    data = raw if isinstance(raw, bytes) else raw.encode("utf-8")
    cover = _read_cover(args)

    if verbose:
        _log(f"Algorithm:    {provider.metadata.name} ({provider.algorithm_id.value})")
        _log(f"Payload size: {len(data)} bytes")
        _log(f"Max payload:  {provider.max_payload_size(cover)} bytes")

    stego = provider.encode(data, cover)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as fh:
            fh.write(stego)
        if verbose:
            _log(f"Stego text written to {args.output}")
    else:
        sys.stdout.write(stego)
        if sys.stdout.isatty():
            sys.stdout.write("\n")


def _cmd_decode(args: argparse.Namespace, verbose: bool) -> None:
    raw = _read_input(args)
    stego = raw if isinstance(raw, str) else raw.decode("utf-8")
    mode = DecodeMode.LENIENT if args.lenient else DecodeMode.STRICT
    registry = default_registry()

    if args.algorithm is None:
        algorithm_id, recovered = registry.auto_decode(stego, mode)
    else:
        provider = registry.get_provider(args.algorithm)
        algorithm_id, recovered = provider.algorithm_id, provider.decode(stego, mode)

    if verbose:
        _log(f"Algorithm:         {algorithm_id.value}")
        _log(f"Recovered payload: {len(recovered)} bytes")

    if args.output:
        with open(args.output, "wb") as fh:
            fh.write(recovered)
        if verbose:
            _log(f"Decoded bytes written to {args.output}")
    else:
        sys.stdout.buffer.write(recovered)
        if sys.stdout.isatty():
            sys.stdout.write("\n")


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    verbose = args.verbose

    try:
        setup_logging("DEBUG" if verbose and args.log_level is None else args.log_level)
        if args.command == "algorithms":
            _cmd_algorithms(args)
        elif args.command == "capacity":
            _cmd_capacity(args)
        elif args.command == "cover":
            _cmd_cover(args)
        elif args.command == "encode":
            _cmd_encode(args, verbose)
        else:
            _cmd_decode(args, verbose)
    except StegoError as exc:
        print(f"nahan: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
