"""Shared fixtures for KubeStep integration tests.

Integration tests run whole stages (and the CLI) against stand-ins for the
cluster: the in-memory FakeCluster from the root conftest, or a shell script
posing as kubectl that records every invocation.
"""

from __future__ import annotations

from pathlib import Path

import pytest

NGINX_MANIFEST = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: nginx-deployment
  labels:
    app: nginx
spec:
  replicas: 3
  selector:
    matchLabels:
      app: nginx
  template:
    metadata:
      labels:
        app: nginx
    spec:
      containers:
        - name: nginx
          image: nginx:1.14.2
          ports:
            - containerPort: 80
"""

_FAKE_KUBECTL = """\
#!/bin/sh
echo "$@" >> "{log}"
exit 0
"""


class RecordingKubectl:
    """Executable kubectl stand-in; each invocation appends its arguments to a log."""

    def __init__(self, directory: Path) -> None:
        self.log = directory / "kubectl.log"
        self.path = directory / "kubectl"
        self.path.write_text(_FAKE_KUBECTL.format(log=self.log), encoding="utf-8")
        self.path.chmod(0o755)

    def invocations(self) -> list[str]:
        if not self.log.exists():
            return []
        return self.log.read_text(encoding="utf-8").splitlines()


@pytest.fixture
def recording_kubectl(tmp_path: Path) -> RecordingKubectl:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    return RecordingKubectl(bin_dir)


@pytest.fixture
def nginx_workspace(tmp_path: Path) -> Path:
    """Working directory holding the nginx manifest one folder down."""
    workspace = tmp_path / "work"
    (workspace / "manifests").mkdir(parents=True)
    (workspace / "manifests" / "deployment.yml").write_text(NGINX_MANIFEST, encoding="utf-8")
    return workspace
