from __future__ import annotations

import pytest

from doc_quizzer.core import workspace


def test_ensure_workspace_creates_directories(tmp_path, monkeypatch):
    root = tmp_path / "data"
    monkeypatch.setenv(workspace.WORKSPACE_ENV, str(root))

    layout = workspace.ensure_workspace()

    assert layout.home == root.resolve()
    assert set(layout.directories) == {"config", "logs", "state", "exports"}
    for name, path in layout.items():
        assert path.is_dir()
        assert layout.created[name] is True
    assert layout.created["home"] is True


def test_ensure_workspace_is_idempotent(tmp_path, monkeypatch):
    root = tmp_path / "existing"
    monkeypatch.setenv(workspace.WORKSPACE_ENV, str(root))

    first = workspace.ensure_workspace()
    second = workspace.ensure_workspace()

    assert first.home == second.home
    assert all(not created for created in second.created.values())


def test_ensure_workspace_respects_custom_path(tmp_path):
    custom = tmp_path / "custom-root"

    layout = workspace.ensure_workspace(path=custom, env={})

    assert layout.home == custom.resolve()
    assert layout.path_for("state") == custom.resolve() / "state"


def test_ensure_workspace_without_create(tmp_path):
    root = tmp_path / "deferred"

    layout = workspace.ensure_workspace(
        env={workspace.WORKSPACE_ENV: str(root)}, create=False
    )

    assert layout.home == root.resolve()
    assert not root.exists()
    assert all(not created for created in layout.created.values())


def test_ensure_workspace_errors_when_path_is_file(tmp_path, monkeypatch):
    root = tmp_path / "file"
    root.write_text("not a dir", encoding="utf-8")
    monkeypatch.setenv(workspace.WORKSPACE_ENV, str(root))

    with pytest.raises(workspace.WorkspaceError):
        workspace.ensure_workspace()


def test_ensure_workspace_errors_when_subdir_is_file(tmp_path):
    root = tmp_path / "home"
    root.mkdir()
    (root / "state").write_text("oops", encoding="utf-8")

    with pytest.raises(workspace.WorkspaceError):
        workspace.ensure_workspace(path=root)
    with pytest.raises(workspace.WorkspaceError):
        workspace.ensure_workspace(path=root, create=False)


def test_path_for_unknown_key_errors(tmp_path):
    layout = workspace.ensure_workspace(path=tmp_path / "ws", create=False)

    with pytest.raises(KeyError):
        layout.path_for("unknown")


def _deny_home(monkeypatch, denied_home):
    original = workspace._build_layout

    def build(home, *, create):
        if home == denied_home:
            raise PermissionError(f"denied: {home}")
        return original(home, create=create)

    monkeypatch.setattr(workspace, "_build_layout", build)


def test_default_home_falls_back_to_temp_dir(tmp_path, monkeypatch):
    default = (tmp_path / "default-home").resolve()
    monkeypatch.setattr(workspace, "DEFAULT_WORKSPACE", default)
    monkeypatch.setattr(
        workspace.tempfile, "gettempdir", lambda: str(tmp_path / "tmp")
    )
    _deny_home(monkeypatch, default)

    layout = workspace.ensure_workspace(env={})

    assert layout.home == tmp_path / "tmp" / "doc-quizzer"
    assert layout.path_for("logs").is_dir()


def test_explicit_home_does_not_fall_back(tmp_path, monkeypatch):
    chosen = (tmp_path / "chosen").resolve()
    monkeypatch.setattr(
        workspace.tempfile, "gettempdir", lambda: str(tmp_path / "tmp")
    )
    _deny_home(monkeypatch, chosen)

    with pytest.raises(workspace.WorkspaceError, match="Unable to prepare"):
        workspace.ensure_workspace(path=chosen, env={})
    assert not (tmp_path / "tmp").exists()
