"""Unit tests for dman.render.

groff and the pager are replaced by shell scripts placed first on PATH.
"""

from __future__ import annotations

import gzip
import io
import os
import shutil
from typing import TYPE_CHECKING

import pytest

from dman import render
from dman.errors import ErrorCode, RenderError

if TYPE_CHECKING:
    from pathlib import Path

# Echoes its arguments and whether GROFF_NO_SGR is set, then the input.
FAKE_GROFF = """#!/bin/sh
echo "args: $*"
echo "no_sgr: ${GROFF_NO_SGR-unset}."
cat
"""

# Records its arguments and copies the file it was given.
FAKE_PAGER = """#!/bin/sh
echo "$@" > "$DMAN_TEST_OUT.args"
for last; do :; done
cat "$last" > "$DMAN_TEST_OUT"
"""


def _install(bin_dir: Path, name: str, script: str) -> Path:
    bin_dir.mkdir(exist_ok=True)
    path = bin_dir / name
    path.write_text(script)
    path.chmod(0o755)
    return path


@pytest.fixture()
def fake_bin(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    monkeypatch.setenv("COLUMNS", "100")
    monkeypatch.setenv("DMAN_TEST_OUT", str(tmp_path / "paged"))
    monkeypatch.delenv("MANPAGER", raising=False)
    monkeypatch.delenv("PAGER", raising=False)
    return bin_dir


class TestPlainSource:
    def test_plain_roff_returned_rewound(self) -> None:
        stream = io.BytesIO(b".TH LS 1\n")
        assert render.plain_source(stream) is stream
        assert stream.tell() == 0

    def test_gzip_member_is_decompressed(self) -> None:
        stream = io.BytesIO(gzip.compress(b".TH LS 1\n"))
        with render.plain_source(stream) as page:
            assert page.read() == b".TH LS 1\n"

    def test_empty_stream(self) -> None:
        assert render.plain_source(io.BytesIO()).read() == b""


class TestColumns:
    @pytest.mark.parametrize(("width", "expected"), [("60", 60), ("120", 120), ("400", 150)])
    def test_capped_terminal_width(
        self, monkeypatch: pytest.MonkeyPatch, width: str, expected: int
    ) -> None:
        monkeypatch.setenv("COLUMNS", width)
        assert render.columns() == expected

    def test_default_without_terminal(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            shutil, "get_terminal_size", lambda fallback: os.terminal_size(fallback)
        )
        assert render.columns() == render.DEFAULT_COLUMNS


class TestPreferredPager:
    def test_default(self) -> None:
        assert render.preferred_pager({}) == ["less", "-is"]

    def test_manpager_wins(self) -> None:
        environ = {"MANPAGER": "most -s", "PAGER": "more"}
        assert render.preferred_pager(environ) == ["most", "-s"]

    def test_pager_used_without_manpager(self) -> None:
        assert render.preferred_pager({"PAGER": "less -R"}) == ["less", "-R"]

    def test_shell_quoting(self) -> None:
        environ = {"PAGER": "'/opt/my pager/bin/view' --quiet"}
        assert render.preferred_pager(environ) == ["/opt/my pager/bin/view", "--quiet"]

    @pytest.mark.parametrize("value", ["", "   ", "less 'unterminated"])
    def test_unusable_value_falls_through(self, value: str) -> None:
        assert render.preferred_pager({"MANPAGER": value, "PAGER": "more"}) == ["more"]


class TestTypeset:
    def test_runs_groff_in_ascii_mode(self, fake_bin: Path) -> None:
        _install(fake_bin, "groff", FAKE_GROFF)

        with render.typeset(io.BytesIO(b".TH LS 1\n"), 90) as out:
            text = out.read().decode()
            name = out.name

        assert text.splitlines() == [
            "args: -T ascii -m mandoc -rLL=90n",
            "no_sgr: .",
            ".TH LS 1",
        ]
        assert not os.path.exists(name)

    def test_missing_groff(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()
        monkeypatch.setenv("PATH", str(empty))

        with pytest.raises(RenderError) as exc_info:
            render.typeset(io.BytesIO(b".TH LS 1\n"), 78)
        assert exc_info.value.code == ErrorCode.RENDER_FAILED
        assert exc_info.value.message.startswith("render: typeset:")
        assert "groff" in exc_info.value.suggestion

    def test_groff_failure(self, fake_bin: Path) -> None:
        _install(fake_bin, "groff", "#!/bin/sh\ncat >/dev/null\nexit 3\n")

        with pytest.raises(RenderError, match="render: typeset:"):
            render.typeset(io.BytesIO(b".TH LS 1\n"), 78)


class TestRenderPage:
    def test_typeset_page_shown_in_pager(self, fake_bin: Path, tmp_path: Path, monkeypatch) -> None:
        _install(fake_bin, "groff", FAKE_GROFF)
        pager = _install(fake_bin, "fakepager", FAKE_PAGER)
        monkeypatch.setenv("MANPAGER", f"{pager} -X")

        render.render_page(io.BytesIO(b".TH LS 1\n"))

        paged = (tmp_path / "paged").read_text().splitlines()
        assert paged[0] == "args: -T ascii -m mandoc -rLL=100n"
        assert paged[-1] == ".TH LS 1"
        args = (tmp_path / "paged.args").read_text().split()
        assert args[0] == "-X"
        assert os.path.basename(args[1]).startswith("dman-")
        # The typeset file is removed once the pager exits.
        assert not os.path.exists(args[1])

    def test_pager_from_pager_variable(self, fake_bin: Path, tmp_path: Path, monkeypatch) -> None:
        _install(fake_bin, "groff", FAKE_GROFF)
        _install(fake_bin, "fakepager", FAKE_PAGER)
        monkeypatch.setenv("PAGER", "fakepager")

        render.render_page(io.BytesIO(b".SH NAME\n"))

        assert (tmp_path / "paged").read_text().splitlines()[-1] == ".SH NAME"

    def test_missing_pager(self, fake_bin: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _install(fake_bin, "groff", FAKE_GROFF)
        monkeypatch.setenv("MANPAGER", "no-such-pager-installed")

        with pytest.raises(RenderError, match="render: output:") as exc_info:
            render.render_page(io.BytesIO(b".TH LS 1\n"))
        assert "MANPAGER" in exc_info.value.suggestion

    def test_pager_failure(self, fake_bin: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _install(fake_bin, "groff", FAKE_GROFF)
        _install(fake_bin, "badpager", "#!/bin/sh\nexit 1\n")
        monkeypatch.setenv("PAGER", "badpager")

        with pytest.raises(RenderError, match="render: output:"):
            render.render_page(io.BytesIO(b".TH LS 1\n"))
