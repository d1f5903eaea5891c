from __future__ import annotations

from pathlib import Path

from printer_provisioner.main import main as core_main


def main(argv: list[str] | None = None) -> int:
    # Payload entry script: the INF, catalogs and vendor tools sit next to it.
    return core_main(argv, source_dir=Path(__file__).resolve().parent)


if __name__ == "__main__":
    raise SystemExit(main())
