from deltashell.router import PHASE_USAGE, SCP_USAGE, Invalid, PhaseCommand, ScpRequest, parse_line, split_endpoint


def test_phase_command_split_on_first_colon() -> None:
    assert parse_line("BUILD: echo a:b") == PhaseCommand("BUILD", "echo a:b")
    assert parse_line("  TEST :ls  ") == PhaseCommand("TEST", "ls")


def test_line_without_colon_is_invalid() -> None:
    assert parse_line("ls -la") == Invalid(PHASE_USAGE)


def test_empty_phase_or_command_is_invalid() -> None:
    assert parse_line("BUILD:   ") == Invalid(PHASE_USAGE)
    assert parse_line(": ls") == Invalid(PHASE_USAGE)


def test_scp_request() -> None:
    assert parse_line("scp BUILD:/tmp/a DEPLOY:/srv/a") == ScpRequest("BUILD:/tmp/a", "DEPLOY:/srv/a")


def test_scp_wrong_arity() -> None:
    assert parse_line("scp BUILD:/tmp/a") == Invalid(SCP_USAGE)


def test_split_endpoint() -> None:
    assert split_endpoint("BUILD:/tmp/a") == ("BUILD", "/tmp/a")
    assert split_endpoint("/tmp/a") is None
    assert split_endpoint(":/tmp/a") is None
