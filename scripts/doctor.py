"""Environment compatibility and preflight checks for local setup."""

from __future__ import annotations

import os
import socket
import sys
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

from ai_router.config import RouterSettings
from ai_router.core.errors import ConfigurationError
from ai_router.routing.rules import RoutingTable

MIN_PYTHON = (3, 9)


@dataclass
class DoctorResult:
    ok: bool
    messages: List[str]


def _python_version_tuple() -> Tuple[int, int, int]:
    v = sys.version_info
    return (v.major, v.minor, v.micro)


def _check_python_version(errors: List[str]) -> None:
    current = _python_version_tuple()
    if current[:2] < MIN_PYTHON:
        errors.append(
            f"Python {current[0]}.{current[1]} is unsupported. "
            f"Use Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]} or newer."
        )


def _check_router_settings(env: Mapping[str, str], errors: List[str], warnings: List[str]) -> None:
    try:
        settings = RouterSettings.from_env(env)
    except ConfigurationError as exc:
        errors.append(exc.message)
        return

    try:
        warnings.extend(settings.validate_provider_keys())
    except ConfigurationError as exc:
        errors.append(
            f"{exc.message} For a local run: `USE_STUB_ADAPTERS=true python -m ai_router.server`."
        )

    if settings.use_stub_adapters:
        warnings.append("USE_STUB_ADAPTERS=true: responses are canned, no provider is called.")

    if settings.router.primary_max_retries == 0 and settings.router.fallback_max_retries == 0:
        warnings.append("Retries are disabled on both primary and fallback paths.")


def _check_routing_rules(errors: List[str]) -> None:
    try:
        RoutingTable()
    except ConfigurationError as exc:
        errors.append(f"Built-in routing rules are invalid: {exc.message}")


def _check_port_binding(env: Mapping[str, str], errors: List[str]) -> None:
    host = env.get("HOST", "0.0.0.0").strip() or "0.0.0.0"
    raw_port = env.get("PORT", "8000").strip() or "8000"

    try:
        port = int(raw_port)
    except ValueError:
        errors.append(f"PORT must be an integer, got `{raw_port}`.")
        return

    if not (0 <= port < 65536):
        errors.append(f"PORT must be between 0 and 65535, got `{port}`.")
        return

    bind_host = "127.0.0.1" if host in {"0.0.0.0", "localhost", ""} else host
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((bind_host, port))
    except OSError as exc:
        errors.append(
            f"PORT/HOST conflict: cannot bind {bind_host}:{port} ({exc}). "
            "Pick a free port, e.g. `PORT=8010`."
        )
    finally:
        sock.close()


def run_doctor(env: Optional[Mapping[str, str]] = None) -> DoctorResult:
    env_map: Mapping[str, str] = os.environ if env is None else env
    errors: List[str] = []
    warnings: List[str] = []

    _check_python_version(errors)
    _check_router_settings(env_map, errors, warnings)
    _check_routing_rules(errors)
    _check_port_binding(env_map, errors)

    messages: List[str] = []
    if errors:
        messages.append("Doctor found configuration issues:")
        for i, msg in enumerate(errors, 1):
            messages.append(f"{i}. {msg}")
        messages.append("Fix the items above and rerun `python -m scripts.doctor`.")
    else:
        messages.append("Doctor checks passed.")

    if warnings:
        messages.append("Warnings:")
        for i, msg in enumerate(warnings, 1):
            messages.append(f"- {msg}")

    return DoctorResult(ok=not errors, messages=messages)


def main() -> int:
    result = run_doctor()
    print("\n".join(result.messages))
    return 0 if result.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
