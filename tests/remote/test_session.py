"""Tests for remexec.remote.session."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import paramiko  # type: ignore[import-untyped]
import pytest

from conftest import FakeProvider, FakeSession
from remexec.remote.errors import HostKeyMismatch
from remexec.remote.session import (
    ParamikoSessionProvider,
    SessionGateway,
    _RejectUnknownHostKey,
    known_hosts_name,
)


def _mismatch(path: str = "/tmp/known_hosts") -> HostKeyMismatch:
    key = MagicMock()
    key.get_name.return_value = "ssh-ed25519"
    return HostKeyMismatch("host.example.com", key, path)


class TestSessionGateway:
    def test_yields_session_and_closes_it(self) -> None:
        provider = FakeProvider()
        gateway = SessionGateway(
            "host.example.com", "deploy", {"port": 2222}, provider=provider
        )
        with gateway.session() as session:
            assert session is provider.session
            assert not session.closed
        assert provider.session.closed
        assert provider.calls == [
            ("host.example.com", "deploy", {"port": 2222})
        ]

    def test_closes_session_on_error(self) -> None:
        provider = FakeProvider()
        gateway = SessionGateway("h", "u", {}, provider=provider)
        with pytest.raises(RuntimeError):
            with gateway.session():
                raise RuntimeError("boom")
        assert provider.session.closed

    def test_host_key_mismatch_propagates_without_remember_host(
        self,
    ) -> None:
        err = _mismatch()
        provider = FakeProvider(errors=[err])
        gateway = SessionGateway("h", "u", {}, provider=provider)
        with patch.object(HostKeyMismatch, "remember_host") as remember:
            with pytest.raises(HostKeyMismatch):
                with gateway.session():
                    pass
        remember.assert_not_called()
        assert len(provider.calls) == 1

    def test_remember_host_retries_once(self) -> None:
        provider = FakeProvider(errors=[_mismatch()])
        gateway = SessionGateway(
            "h", "u", {}, remember_host=True, provider=provider
        )
        with patch.object(HostKeyMismatch, "remember_host") as remember:
            with gateway.session() as session:
                assert session is provider.session
        remember.assert_called_once_with()
        assert len(provider.calls) == 2

    def test_remember_host_retries_at_most_once(self) -> None:
        provider = FakeProvider(errors=[_mismatch(), _mismatch()])
        gateway = SessionGateway(
            "h", "u", {}, remember_host=True, provider=provider
        )
        with patch.object(HostKeyMismatch, "remember_host") as remember:
            with pytest.raises(HostKeyMismatch):
                with gateway.session():
                    pass
        remember.assert_called_once_with()
        assert len(provider.calls) == 2

    def test_other_errors_are_not_retried(self) -> None:
        provider = FakeProvider(
            errors=[paramiko.AuthenticationException("denied")]
        )
        gateway = SessionGateway(
            "h", "u", {}, remember_host=True, provider=provider
        )
        with pytest.raises(paramiko.AuthenticationException):
            with gateway.session():
                pass
        assert len(provider.calls) == 1


class TestHostKeyMismatch:
    def test_remember_host_writes_known_hosts(self, tmp_path: Path) -> None:
        key = paramiko.RSAKey.generate(1024)
        known_hosts = tmp_path / "ssh" / "known_hosts"
        err = HostKeyMismatch("[host.example.com]:2222", key, str(known_hosts))

        err.remember_host()

        host_keys = paramiko.HostKeys(str(known_hosts))
        entry = host_keys.lookup("[host.example.com]:2222")
        assert entry is not None
        assert entry["ssh-rsa"] == key

    def test_remember_host_replaces_changed_key(self, tmp_path: Path) -> None:
        old_key = paramiko.RSAKey.generate(1024)
        new_key = paramiko.RSAKey.generate(1024)
        known_hosts = tmp_path / "known_hosts"
        HostKeyMismatch("host", old_key, str(known_hosts)).remember_host()

        HostKeyMismatch("host", new_key, str(known_hosts)).remember_host()

        host_keys = paramiko.HostKeys(str(known_hosts))
        assert host_keys.lookup("host")["ssh-rsa"] == new_key

    def test_message(self) -> None:
        assert "host.example.com" in str(_mismatch())


class TestParamikoSessionProvider:
    @patch("remexec.remote.session.paramiko.SSHClient")
    def test_connect_maps_options(self, mock_client_cls: MagicMock) -> None:
        client = mock_client_cls.return_value
        provider = ParamikoSessionProvider("/nonexistent/known_hosts")

        provider.connect(
            "host.example.com",
            "deploy",
            {
                "verbose": "warn",
                "non_interactive": True,
                "use_agent": False,
                "password": "pw",
                "port": 2222,
            },
        )

        client.connect.assert_called_once_with(
            hostname="host.example.com",
            username="deploy",
            allow_agent=False,
            password="pw",
            port=2222,
        )
        client.load_host_keys.assert_not_called()

    @patch("remexec.remote.session.paramiko.SSHClient")
    def test_loads_known_hosts_file(
        self, mock_client_cls: MagicMock, tmp_path: Path
    ) -> None:
        known_hosts = tmp_path / "known_hosts"
        known_hosts.write_text("")
        client = mock_client_cls.return_value

        ParamikoSessionProvider(str(known_hosts)).connect("h", "u", {})

        client.load_host_keys.assert_called_once_with(str(known_hosts))
        policy = client.set_missing_host_key_policy.call_args.args[0]
        assert isinstance(policy, _RejectUnknownHostKey)

    @patch("remexec.remote.session.paramiko.SSHClient")
    def test_bad_host_key_becomes_mismatch(
        self, mock_client_cls: MagicMock
    ) -> None:
        client = mock_client_cls.return_value
        got, expected = MagicMock(), MagicMock()
        got.get_name.return_value = "ssh-ed25519"
        client.connect.side_effect = paramiko.BadHostKeyException(
            "host.example.com", got, expected
        )

        with pytest.raises(HostKeyMismatch) as exc_info:
            ParamikoSessionProvider("/tmp/kh").connect(
                "host.example.com", "u", {}
            )

        assert exc_info.value.hostname == "host.example.com"
        assert exc_info.value.key is got
        assert exc_info.value.known_hosts_file == "/tmp/kh"
        client.close.assert_called_once_with()

    @patch("remexec.remote.session.paramiko.SSHClient")
    def test_changed_key_on_custom_port_is_replaced(
        self, mock_client_cls: MagicMock, tmp_path: Path
    ) -> None:
        old_key = paramiko.RSAKey.generate(1024)
        new_key = paramiko.RSAKey.generate(1024)
        known_hosts = tmp_path / "known_hosts"
        stale = paramiko.HostKeys()
        stale.add("[host.example.com]:2222", "ssh-rsa", old_key)
        stale.save(str(known_hosts))
        client = mock_client_cls.return_value
        client.connect.side_effect = paramiko.BadHostKeyException(
            "host.example.com", new_key, old_key
        )

        with pytest.raises(HostKeyMismatch) as exc_info:
            ParamikoSessionProvider(str(known_hosts)).connect(
                "host.example.com", "u", {"port": 2222}
            )
        assert exc_info.value.hostname == "[host.example.com]:2222"

        exc_info.value.remember_host()

        host_keys = paramiko.HostKeys(str(known_hosts))
        assert host_keys.lookup("[host.example.com]:2222")["ssh-rsa"] == (
            new_key
        )
        assert host_keys.lookup("host.example.com") is None

    @patch("remexec.remote.session.paramiko.SSHClient")
    def test_connect_failure_closes_client(
        self, mock_client_cls: MagicMock
    ) -> None:
        client = mock_client_cls.return_value
        client.connect.side_effect = paramiko.AuthenticationException("no")

        with pytest.raises(paramiko.AuthenticationException):
            ParamikoSessionProvider().connect("h", "u", {})

        client.close.assert_called_once_with()

    def test_unknown_host_policy_raises_mismatch(self) -> None:
        key = MagicMock()
        key.get_name.return_value = "ssh-ed25519"
        policy = _RejectUnknownHostKey("/tmp/kh")
        with pytest.raises(HostKeyMismatch) as exc_info:
            policy.missing_host_key(MagicMock(), "new.example.com", key)
        assert exc_info.value.hostname == "new.example.com"


class TestSessionReuse:
    def test_each_scope_connects_again(self) -> None:
        provider = FakeProvider(session=FakeSession())
        gateway = SessionGateway("h", "u", {}, provider=provider)
        with gateway.session():
            pass
        with gateway.session():
            pass
        assert len(provider.calls) == 2


class TestKnownHostsName:
    def test_default_port(self) -> None:
        assert known_hosts_name("host.example.com") == "host.example.com"
        assert known_hosts_name("host.example.com", 22) == "host.example.com"

    def test_custom_port(self) -> None:
        assert known_hosts_name("10.0.0.5", 2222) == "[10.0.0.5]:2222"
