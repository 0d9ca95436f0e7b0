from __future__ import annotations

from ._utils import iter_source_files, matches_prefix, package_root, parse_imports


def test_services_do_not_import_cli_modules() -> None:
    root = package_root()
    offenders: list[str] = []

    for file_path in iter_source_files(root / "services"):
        rel = file_path.relative_to(root)
        for item in parse_imports(file_path):
            if matches_prefix(item.module, "relpub.cli"):
                offenders.append(f"{rel}:{item.line}: forbidden import '{item.module}'")

    assert not offenders, "services -> cli dependency violations:\n" + "\n".join(offenders)


def test_rich_is_only_imported_by_console() -> None:
    root = package_root()
    allowlist = {"output/console.py"}
    offenders: list[str] = []

    for file_path in iter_source_files(root):
        rel = file_path.relative_to(root)
        if rel.as_posix() in allowlist:
            continue
        for item in parse_imports(file_path):
            if matches_prefix(item.module, "rich"):
                offenders.append(f"{rel}:{item.line}: direct rich import '{item.module}'")

    assert not offenders, "Direct rich usage policy violations:\n" + "\n".join(offenders)
