# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import json
import logging

import pytest
from botocore.exceptions import ClientError

from asgstatus.aws.metadata import InstanceIdentity
from asgstatus.cli import main as cli
from asgstatus.config import HealthcheckSettings
from asgstatus.errors import HealthcheckTimedOut, UnknownCommandError
from asgstatus.runtime import AsgStatus

IDENTITY = InstanceIdentity(instance_id="i-1", region="us-east-1")


class FakeAutoScaling:
    def __init__(self):
        self.calls = []

    def set_instance_health(self, **kwargs):
        self.calls.append(("set_instance_health", kwargs))
        return {"ResponseMetadata": {}}

    def enter_standby(self, **kwargs):
        self.calls.append(("enter_standby", kwargs))
        return {"Activities": [{"ActivityId": "a-1", "StatusCode": "InProgress"}], "ResponseMetadata": {}}

    def exit_standby(self, **kwargs):
        self.calls.append(("exit_standby", kwargs))
        return {"Activities": [], "ResponseMetadata": {}}

    def describe_auto_scaling_groups(self, **kwargs):
        self.calls.append(("describe_auto_scaling_groups", kwargs))
        return {"AutoScalingGroups": [{"AutoScalingGroupName": "web"}], "ResponseMetadata": {}}


class FakePaginator:
    def paginate(self, **_):
        return iter([{"Tags": [{"Key": "aws:autoscaling:groupName", "Value": "web"}]}])


class FakeEc2:
    def get_paginator(self, _name):
        return FakePaginator()


class FakeSession:
    def __init__(self):
        self.autoscaling = FakeAutoScaling()
        self.ec2 = FakeEc2()

    def client(self, name):
        return {"autoscaling": self.autoscaling, "ec2": self.ec2}[name]


class DummyMetadata:
    def __init__(self):
        self.closed = False

    def instance_identity(self):
        return IDENTITY

    def close(self):
        self.closed = True


def _asg(session=None) -> AsgStatus:
    return AsgStatus(session or FakeSession(), DummyMetadata())


def test_facade_resolves_identity_and_group():
    session = FakeSession()
    with AsgStatus(session, DummyMetadata()) as asg:
        assert asg.instance_id == "i-1"
        assert asg.asg_name == "web"
        asg.enter_standby()
        asg.exit_standby()
        asg.status()
        asg.unhealthy()
    assert asg.metadata.closed is True
    assert [name for name, _ in session.autoscaling.calls] == [
        "enter_standby",
        "exit_standby",
        "describe_auto_scaling_groups",
        "set_instance_health",
    ]


def test_healthy_without_url_skips_healthcheck(monkeypatch):
    monkeypatch.setattr("asgstatus.runtime.wait_until_healthy", pytest.fail)
    session = FakeSession()
    _asg(session).healthy(HealthcheckSettings())
    assert session.autoscaling.calls[-1][1]["HealthStatus"] == "Healthy"


def test_healthy_waits_and_reports_healthy(monkeypatch):
    seen = []
    monkeypatch.setattr("asgstatus.runtime.wait_until_healthy", seen.append)
    session = FakeSession()
    settings = HealthcheckSettings(url="http://localhost/health")

    _asg(session).healthy(settings)

    assert seen == [settings]
    assert session.autoscaling.calls[-1][1]["HealthStatus"] == "Healthy"


def test_healthcheck_timeout_reports_unhealthy(monkeypatch, caplog):
    def timed_out(settings):
        raise HealthcheckTimedOut(settings.timeout, RuntimeError("refused"))

    monkeypatch.setattr("asgstatus.runtime.wait_until_healthy", timed_out)
    session = FakeSession()

    _asg(session).healthy(HealthcheckSettings(url="http://localhost/health", timeout=60.0))

    assert session.autoscaling.calls[-1] == (
        "set_instance_health",
        {"InstanceId": "i-1", "HealthStatus": "Unhealthy", "ShouldRespectGracePeriod": False},
    )
    assert "healthcheck exceeded timeout(1m0s): refused" in caplog.text


def test_run_rejects_unknown_command():
    with pytest.raises(UnknownCommandError, match="Unknown argument: reboot"):
        _asg().run("reboot")


def test_build_parser():
    parser = cli.build_parser()
    args = parser.parse_args(["--healthcheck-url", "https://localhost:8443/ready", "--healthcheck-timeout", "90s"])
    assert args.command is None
    assert args.healthcheck_url == "https://localhost:8443/ready"
    assert args.healthcheck_timeout == 90.0

    args = parser.parse_args(["status"])
    assert args.command == "status"
    assert args.healthcheck_url == ""
    assert args.healthcheck_timeout == 300.0


@pytest.mark.parametrize(
    "argv",
    [
        ["--healthcheck-timeout", "soon"],
        ["--healthcheck-url", "localhost/health"],
        ["--healthcheck-url", "ftp://example.com/"],
    ],
)
def test_build_parser_rejects_bad_flags(argv):
    with pytest.raises(SystemExit) as excinfo:
        cli.build_parser().parse_args(argv)
    assert excinfo.value.code == 2


@pytest.fixture
def quiet_cli(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda: None)


class FakeAsgStatus:
    instances: list["FakeAsgStatus"] = []
    result: dict = {}
    error: Exception | None = None

    def __init__(self):
        self.commands = []
        FakeAsgStatus.instances.append(self)

    def run(self, command, settings):
        self.commands.append((command, settings))
        if self.error is not None:
            raise self.error
        return self.result

    def __enter__(self):
        return self

    def __exit__(self, *_):
        return None


@pytest.fixture
def fake_asg(monkeypatch):
    FakeAsgStatus.instances = []
    FakeAsgStatus.result = {}
    FakeAsgStatus.error = None
    monkeypatch.setattr(cli, "AsgStatus", FakeAsgStatus)
    return FakeAsgStatus


def test_main_requires_command_or_url(quiet_cli, fake_asg, caplog):
    assert cli.main([]) == 1
    assert "Must supply an argument: enter-standby|exit-standby|healthy|unhealthy|status" in caplog.text
    assert fake_asg.instances == []


def test_main_unknown_command(quiet_cli, fake_asg, caplog):
    assert cli.main(["reboot"]) == 1
    assert "Unknown argument: reboot" in caplog.text
    assert fake_asg.instances == []


def test_main_defaults_to_healthy_with_url(quiet_cli, fake_asg):
    assert cli.main(["--healthcheck-url", "http://localhost/health", "--healthcheck-timeout", "2m"]) == 0
    command, settings = fake_asg.instances[0].commands[0]
    assert command == "healthy"
    assert settings.url == "http://localhost/health"
    assert settings.timeout == 120.0


def test_main_prints_standby_response(quiet_cli, fake_asg, capsys):
    fake_asg.result = {"Activities": [{"ActivityId": "a-1"}]}
    assert cli.main(["enter-standby"]) == 0
    out = capsys.readouterr().out
    assert json.loads(out) == {"Activities": [{"ActivityId": "a-1"}]}
    assert '    "Activities"' in out


def test_main_logs_status(quiet_cli, fake_asg, caplog, capsys):
    caplog.set_level(logging.INFO)
    fake_asg.result = {"AutoScalingGroups": [{"AutoScalingGroupName": "web"}]}
    assert cli.main(["status"]) == 0
    assert '"AutoScalingGroupName": "web"' in caplog.text
    assert capsys.readouterr().out == ""


def test_main_returns_error_on_api_failure(quiet_cli, fake_asg, caplog):
    fake_asg.error = ClientError({"Error": {"Code": "AccessDenied", "Message": "nope"}}, "EnterStandby")
    assert cli.main(["enter-standby"]) == 1
    assert "AccessDenied" in caplog.text
