"""Tests for the click command-line interface."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from symscope.cli import symscope_cli

from tests.binaries import CoffSym, ElfSym, build_elf, build_pe

RUST_NAME = "_ZN4core3fmt5write17h0123456789abcdefE"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def elf_path(tmp_path):
    path = tmp_path / "app.elf"
    path.write_bytes(build_elf([
        ElfSym("main", 0x00, 0x40),
        ElfSym("helper", 0x40, 0x10),
        ElfSym(RUST_NAME, 0x50, 0x20),
    ]).data)
    return str(path)


def test_table_output(runner, elf_path):
    result = runner.invoke(symscope_cli, [elf_path])
    assert result.exit_code == 0, result.output
    assert "main" in result.output
    assert "helper" in result.output
    assert "core::fmt::write" in result.output
    assert "ELF64" in result.output


def test_json_output(runner, elf_path):
    result = runner.invoke(symscope_cli, [elf_path, "--json"])
    assert result.exit_code == 0, result.output
    doc = json.loads(result.output)
    assert doc["binary"]["format"] == "elf64"
    assert doc["binary"]["text_size"] == 0x100
    assert [s["name"] for s in doc["symbols"]] == ["main", "helper", "core::fmt::write"]


def test_no_demangle(runner, elf_path):
    result = runner.invoke(symscope_cli, [elf_path, "--json", "--no-demangle"])
    assert result.exit_code == 0, result.output
    names = [s["name"] for s in json.loads(result.output)["symbols"]]
    assert RUST_NAME in names


def test_limit_and_sort(runner, elf_path):
    result = runner.invoke(symscope_cli, [elf_path, "--sort", "name", "--limit", "1"])
    assert result.exit_code == 0, result.output
    assert "core::fmt::write" in result.output
    assert "helper" not in result.output
    assert "Showing 1 of 3 symbols" in result.output


def test_sections(runner, elf_path):
    result = runner.invoke(symscope_cli, [elf_path, "--sections"])
    assert result.exit_code == 0, result.output
    assert ".shstrtab" in result.output
    assert "SYMTAB" in result.output


def test_output_file(runner, elf_path, tmp_path):
    out = tmp_path / "report.json"
    result = runner.invoke(symscope_cli, [elf_path, "--output", str(out)])
    assert result.exit_code == 0, result.output
    doc = json.loads(out.read_text(encoding="utf-8"))
    assert doc["summary"]["symbol_count"] == 3


def test_format_override(runner, tmp_path):
    path = tmp_path / "app.exe"
    path.write_bytes(build_pe([CoffSym("WinMain", 0x20)]).data)
    result = runner.invoke(symscope_cli, [str(path), "--format", "pe", "--json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["symbols"][0]["size"] == 0xE0


def test_config_file(runner, elf_path, tmp_path):
    config = tmp_path / "symscope.toml"
    config.write_text("[decoder]\nmin_symbol_size = 0x20\n", encoding="utf-8")
    result = runner.invoke(symscope_cli, [elf_path, "--json", "--config", str(config)])
    assert result.exit_code == 0, result.output
    names = [s["name"] for s in json.loads(result.output)["symbols"]]
    assert names == ["main", "core::fmt::write"]


def test_missing_config(runner, elf_path, tmp_path):
    result = runner.invoke(symscope_cli, [elf_path, "--config", str(tmp_path / "none.toml")])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_malformed_binary(runner, tmp_path):
    path = tmp_path / "broken"
    path.write_bytes(build_elf([ElfSym("main", 0, 4)]).data[:40])
    result = runner.invoke(symscope_cli, [str(path)])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_unrecognised_binary(runner, tmp_path):
    path = tmp_path / "script.sh"
    path.write_text("#!/bin/sh\n", encoding="utf-8")
    result = runner.invoke(symscope_cli, [str(path)])
    assert result.exit_code == 1
    assert "Unrecognised" in result.output


def test_missing_path(runner, tmp_path):
    result = runner.invoke(symscope_cli, [str(tmp_path / "nope")])
    assert result.exit_code == 2
