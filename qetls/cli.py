#!/usr/bin/env python3
"""
TLS oriented test utilities.

Usage:
    qetls tls ca-gen   --ca-subject "/C=US/O=Test/CN=root" --ca-key-file certs/ca.key --ca-cert-file certs/ca.crt
    qetls tls cert-gen --ca-key-file certs/ca.key --ca-cert-file certs/ca.crt \\
                       --subject "CN=server" --dns-name server.local \\
                       --tls-key-file certs/tls.key --tls-cert-file certs/tls.crt
    qetls tls ca-check --ca-cert-file certs/ca.crt --ca-bundle-file /etc/pki/tls/certs/ca-bundle.crt

Defaults come from qetls.common.config (environment / .env overridable).
Exit code is 0 on success, 1 on any error; `ca-check` also exits 1 when
the certificate is not in the bundle.
"""

import argparse
import logging
import sys
from typing import List, Optional

from qetls.common.config import (
    CACheckOptions,
    CAOptions,
    PKIOptions,
    default_ca_check_options,
    default_ca_options,
    default_pki_options,
)
from qetls.common.errors import TLSError
from qetls.common.logger import setup_logging
from qetls.crypto.pki import describe_certificate
from qetls.storage import files

logger = logging.getLogger(__name__)


def _add_ca_arguments(parser: argparse.ArgumentParser, defaults: CAOptions) -> None:
    parser.add_argument(
        "--ca-subject",
        dest="ca_subject",
        default=defaults.subject,
        help="The CA certificate subject used to generate the TLS CA.",
    )
    parser.add_argument(
        "--ca-dns-name",
        dest="ca_dns_name",
        default=defaults.dns_name,
        help="The SAN used to generate the TLS CA.",
    )
    parser.add_argument(
        "--ca-key-file",
        dest="ca_key_file",
        default=defaults.ca_key_file,
        help="The CA private key file path.",
    )
    parser.add_argument(
        "--ca-cert-file",
        dest="ca_cert_file",
        default=defaults.ca_cert_file,
        help="The CA certificate file path.",
    )


def _ca_options_from_args(args: argparse.Namespace) -> CAOptions:
    return CAOptions(
        subject=args.ca_subject,
        dns_name=args.ca_dns_name,
        ca_key_file=args.ca_key_file,
        ca_cert_file=args.ca_cert_file,
    )


def _print_certificate(cert) -> None:
    info = describe_certificate(cert)
    logger.debug("certificate details: %s", info)
    print(f"    Subject      : {info['subject']}")
    print(f"    Issuer       : {info['issuer']}")
    print(f"    SAN          : {', '.join('DNS:' + n for n in info['dns_names']) or '-'}")
    print(f"    Not after    : {info['not_after']}")
    print(f"    SHA256       : {info['sha256']}")


def cmd_ca_gen(args: argparse.Namespace) -> int:
    opts = _ca_options_from_args(args)
    _, cert = files.generate_ca_to_files(opts)

    print("[+] CA generated")
    print(f"    Private key  : {opts.ca_key_file}")
    print(f"    Certificate  : {opts.ca_cert_file}")
    _print_certificate(cert)
    return 0


def cmd_cert_gen(args: argparse.Namespace) -> int:
    opts = PKIOptions(
        ca=_ca_options_from_args(args),
        subject=args.subject,
        dns_name=args.dns_name,
        key_file=args.tls_key_file,
        cert_file=args.tls_cert_file,
    )
    _, cert = files.generate_tls_key_cert_pair_to_files(opts)

    print(f"[+] TLS key/cert pair issued by CA {opts.ca.ca_cert_file}")
    print(f"    Private key  : {opts.key_file}")
    print(f"    Certificate  : {opts.cert_file}")
    _print_certificate(cert)
    return 0


def cmd_ca_check(args: argparse.Namespace) -> int:
    opts = CACheckOptions(
        ca_cert_file=args.ca_cert_file,
        ca_bundle_file=args.ca_bundle_file,
    )
    if not opts.ca_cert_file:
        args.parser.print_usage(sys.stderr)
        print("[-] --ca-cert-file is required", file=sys.stderr)
        return 1
    if not opts.ca_bundle_file:
        args.parser.print_usage(sys.stderr)
        print("[-] --ca-bundle-file is required", file=sys.stderr)
        return 1

    if files.check_ca_cert_in_bundle(opts.ca_cert_file, opts.ca_bundle_file):
        print(f"[+] CA certificate found in bundle {opts.ca_bundle_file}")
        return 0

    print(f"[-] CA certificate NOT found in bundle {opts.ca_bundle_file}", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qetls",
        description="Test-environment CA and TLS certificate utilities.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    groups = parser.add_subparsers(dest="group", metavar="<group>")
    groups.required = True

    tls = groups.add_parser("tls", help="TLS oriented test utilities")
    commands = tls.add_subparsers(dest="command", metavar="<command>")
    commands.required = True

    # ca-gen
    ca_gen = commands.add_parser("ca-gen", help="Generate CA key/cert pair to files")
    _add_ca_arguments(ca_gen, default_ca_options())
    ca_gen.set_defaults(func=cmd_ca_gen, parser=ca_gen)

    # cert-gen
    pki_defaults = default_pki_options()
    cert_gen = commands.add_parser(
        "cert-gen",
        help="Generate TLS key/cert pair to files, signed by a given CA",
        description=(
            "Generate TLS key/cert pair to files, signed by a given CA. "
            "The CA key/cert files must exist; use 'tls ca-gen' to create "
            "a CA for testing purposes."
        ),
    )
    _add_ca_arguments(cert_gen, pki_defaults.ca)
    cert_gen.add_argument(
        "--subject",
        default=pki_defaults.subject,
        help="The TLS certificate subject.",
    )
    cert_gen.add_argument(
        "--dns-name",
        dest="dns_name",
        default=pki_defaults.dns_name,
        help="The SAN added to the TLS certificate.",
    )
    cert_gen.add_argument(
        "--tls-key-file",
        dest="tls_key_file",
        default=pki_defaults.key_file,
        help="The file path of the TLS private key to be generated to.",
    )
    cert_gen.add_argument(
        "--tls-cert-file",
        dest="tls_cert_file",
        default=pki_defaults.cert_file,
        help="The file path of the TLS certificate to be generated to.",
    )
    cert_gen.set_defaults(func=cmd_cert_gen, parser=cert_gen)

    # ca-check
    check_defaults = default_ca_check_options()
    ca_check = commands.add_parser(
        "ca-check",
        help="Check if a CA certificate is included in a CA bundle file",
        description=(
            "Exit code 0 if the CA certificate is found in the bundle, "
            "1 if it is not found or the check fails."
        ),
    )
    ca_check.add_argument(
        "--ca-cert-file",
        dest="ca_cert_file",
        default=check_defaults.ca_cert_file,
        help="The CA certificate file to check",
    )
    ca_check.add_argument(
        "--ca-bundle-file",
        dest="ca_bundle_file",
        default=check_defaults.ca_bundle_file,
        help="The CA bundle file to check against",
    )
    ca_check.set_defaults(func=cmd_ca_check, parser=ca_check)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        return args.func(args)
    except TLSError as exc:
        logger.debug("%s failed", args.command, exc_info=True)
        print(f"[-] {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
