"""
Command Line Tests

Exit codes, argument mapping and complete runs of the entry point.
"""

import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from fake_server import FakeUpdateServer
from whodis.core.message import DNSMessage, DNSResponseCode
from whodis.core.transport import UpdateOutcome
from whodis.main import (
    EXIT_CONFIG_ERROR,
    EXIT_OK,
    EXIT_REJECTED,
    EXIT_TIMEOUT,
    EXIT_TRANSPORT_ERROR,
    build_arg_parser,
    cli_overrides,
    exit_code_for,
    main,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def key_file(tmp_path, rsa_key_pem):
    path = tmp_path / "dns_update.key"
    path.write_bytes(rsa_key_pem)
    return path


class TestExitCodes:
    """Test outcome to exit code mapping"""

    def test_exit_codes(self):
        assert exit_code_for(UpdateOutcome.from_rcode(0, "UDP")) == EXIT_OK
        assert exit_code_for(UpdateOutcome.from_rcode(DNSResponseCode.REFUSED, "UDP")) == EXIT_REJECTED
        assert exit_code_for(UpdateOutcome.timeout("Deadline")) == EXIT_TIMEOUT
        assert exit_code_for(UpdateOutcome.transport_error("refused", "TCP")) == EXIT_TRANSPORT_ERROR


class TestArguments:
    """Test command line parsing"""

    def test_cli_overrides(self):
        args = build_arg_parser().parse_args(
            [
                "--zone", "dyn.lan.",
                "--hostname", "laptop.dyn.lan.",
                "--server", "ns1.dyn.lan:5353",
                "-4",
                "--ttl", "60",
                "--key-file", "/etc/whodis/laptop.key",
                "--timeout", "5",
            ]
        )

        assert cli_overrides(args) == {
            "server": {"address": "ns1.dyn.lan:5353"},
            "update": {
                "zone": "dyn.lan.",
                "hostname": "laptop.dyn.lan.",
                "mode": "v4-only",
                "ttl": 60,
            },
            "signing": {"key_file": "/etc/whodis/laptop.key"},
            "transport": {"overall_timeout": 5.0},
        }

    def test_unset_options_do_not_override(self):
        args = build_arg_parser().parse_args([])

        assert cli_overrides(args) == {}

    def test_require_existing_flag(self):
        args = build_arg_parser().parse_args(["--require-existing", "-6"])

        assert cli_overrides(args)["update"] == {
            "require_existing": True,
            "mode": "v6-only",
        }

    def test_mode_flags_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_arg_parser().parse_args(["-4", "-6"])


class TestMain:
    """Test complete runs of the entry point"""

    @pytest.mark.asyncio
    async def test_print_key_record(self, key_file, capsys):
        code = await main(
            ["--zone", "dyn.lan.", "--key-file", str(key_file), "--print-key-record"]
        )

        assert code == EXIT_OK
        assert capsys.readouterr().out.startswith("dyn.lan. IN KEY 512 3 8 ")

    @pytest.mark.asyncio
    async def test_check_key(self, key_file):
        code = await main(["--zone", "dyn.lan.", "--key-file", str(key_file), "--check-key"])

        assert code == EXIT_OK

    @pytest.mark.asyncio
    async def test_missing_key_file(self, tmp_path):
        code = await main(
            ["--zone", "dyn.lan.", "--key-file", str(tmp_path / "missing.key"), "--check-key"]
        )

        assert code == EXIT_CONFIG_ERROR

    @pytest.mark.asyncio
    async def test_unwritable_log_file(self, tmp_path, key_file, capsys):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        config_file = tmp_path / "whodis.yaml"
        config_file.write_text(f"logging:\n  file: {blocker / 'logs' / 'whodis.log'}\n")

        code = await main(
            [
                "--config", str(config_file),
                "--zone", "dyn.lan.",
                "--key-file", str(key_file),
                "--check-key",
            ]
        )

        assert code == EXIT_CONFIG_ERROR
        assert "Failed to initialize" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_invalid_option_value(self, key_file):
        code = await main(["--zone", "dyn.lan.", "--key-file", str(key_file), "--ttl", "0"])

        assert code == EXIT_CONFIG_ERROR

    @pytest.mark.asyncio
    async def test_missing_hostname(self, key_file):
        code = await main(["--zone", "dyn.lan.", "--key-file", str(key_file)])

        assert code == EXIT_CONFIG_ERROR

    @pytest.mark.asyncio
    async def test_hostname_outside_zone(self, key_file):
        code = await main(
            [
                "--zone", "dyn.lan.",
                "--hostname", "laptop.example.com.",
                "--ip", "10.0.0.5",
                "-4",
                "--key-file", str(key_file),
            ]
        )

        assert code == EXIT_CONFIG_ERROR

    @pytest.mark.asyncio
    async def test_successful_update(self, key_file):
        async with FakeUpdateServer() as server:
            code = await main(
                [
                    "--zone", "dyn.lan.",
                    "--hostname", "laptop.dyn.lan.",
                    "--server", server.address,
                    "--ip", "10.0.0.5",
                    "-4",
                    "--key-file", str(key_file),
                ]
            )

        assert code == EXIT_OK
        request = DNSMessage.from_bytes(server.udp_requests[0])
        assert request.authority[1].get_readable_rdata() == "10.0.0.5"

    @pytest.mark.asyncio
    async def test_rejected_update(self, key_file):
        async with FakeUpdateServer(rcode=DNSResponseCode.NOTAUTH) as server:
            code = await main(
                [
                    "--zone", "dyn.lan.",
                    "--hostname", "laptop.dyn.lan.",
                    "--server", server.address,
                    "--ip", "10.0.0.5",
                    "-4",
                    "--key-file", str(key_file),
                ]
            )

        assert code == EXIT_REJECTED
