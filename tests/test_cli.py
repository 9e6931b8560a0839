import pytest

from vmtranslator import cli


@pytest.fixture
def program(tmp_path):
    path = tmp_path / "Simple.vm"
    path.write_text("push constant 7\npush constant 8\nadd\npop temp 0\n")
    return path


def test_default_output_path():
    assert cli.default_output_path("dir/Prog.vm") == "dir/Prog.asm"
    assert cli.default_output_path("Prog") == "Prog.asm"


def test_translates_to_sibling_file(program, capsys):
    assert cli.main([str(program)]) == cli.EXIT_OK
    output = program.with_suffix(".asm")
    text = output.read_text()
    assert text.startswith("// L0   push constant 7\n@7\nD=A")
    assert not text.endswith("\n")
    assert "Translated 4 instructions" in capsys.readouterr().out


def test_explicit_output_and_flags(program, tmp_path):
    output = tmp_path / "out" / "result.asm"
    output.parent.mkdir()
    code = cli.main([str(program), "-o", str(output), "--no-comments", "--bootstrap", "--verify"])
    assert code == cli.EXIT_OK
    text = output.read_text()
    assert "//" not in text
    assert text.startswith("@256\nD=A\n@SP\nM=D\n\n@7")


def test_syntax_error_exit_code_and_no_output(tmp_path):
    path = tmp_path / "Bad.vm"
    path.write_text("push constant 1\npush nowhere 1\n")
    assert cli.main([str(path)]) == cli.EXIT_SYNTAX_ERROR
    assert not path.with_suffix(".asm").exists()


def test_semantic_error_exit_code_and_no_output(tmp_path):
    path = tmp_path / "Bad.vm"
    path.write_text("push constant 1\npop constant 1\n")
    assert cli.main([str(path)]) == cli.EXIT_SEMANTIC_ERROR
    assert not path.with_suffix(".asm").exists()


def test_static_placeholder_and_strict_mode(tmp_path, capsys):
    path = tmp_path / "Static.vm"
    path.write_text("push static 3\n")
    assert cli.main([str(path)]) == cli.EXIT_OK
    assert "// UNDEF push static 3" in path.with_suffix(".asm").read_text()
    assert "1 unresolved" in capsys.readouterr().out

    path.with_suffix(".asm").unlink()
    assert cli.main([str(path), "--strict"]) == cli.EXIT_SEMANTIC_ERROR
    assert not path.with_suffix(".asm").exists()


def test_layout_file(program, tmp_path):
    layout = tmp_path / "layout.yaml"
    layout.write_text("stack_base: 400\n")
    assert cli.main([str(program), "--layout", str(layout), "--bootstrap"]) == cli.EXIT_OK
    assert "@400" in program.with_suffix(".asm").read_text()


def test_layout_from_environment(program, tmp_path, monkeypatch):
    layout = tmp_path / "layout.yaml"
    layout.write_text("stack_base: 10\n")
    monkeypatch.setenv("VMTRANSLATOR_LAYOUT", str(layout))
    assert cli.main([str(program)]) == cli.EXIT_CONFIG_ERROR


def test_missing_input(tmp_path):
    assert cli.main([str(tmp_path / "missing.vm")]) == cli.EXIT_IO_ERROR


def test_undecodable_input(tmp_path):
    path = tmp_path / "Binary.vm"
    path.write_bytes(b"push constant 1\n\xff\xfe\n")
    assert cli.main([str(path)]) == cli.EXIT_IO_ERROR
    assert not path.with_suffix(".asm").exists()
