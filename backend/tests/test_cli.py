from arcadepos.services import pc_service


def test_pcs_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["pcs", "create", "--number", "pc-07", "--name", "Corner", "--rate", "3"])
    assert result.exit_code == 0
    assert "PASS Created PC: PC-07 - Corner" in result.output

    result = runner.invoke(args=["pcs", "list"])
    assert "PC-07" in result.output
    assert pc_service.list_pcs()[0].hourly_rate.lbp == 270000


def test_pcs_create_duplicate(app, db_session, pc):
    result = app.test_cli_runner().invoke(args=["pcs", "create", "--number", "PC-01", "--name", "Dup"])
    assert "FAIL" in result.output


def test_sessions_active(app, db_session, pc, cashier_id):
    from arcadepos.services import session_service

    runner = app.test_cli_runner()
    assert "No active sessions." in runner.invoke(args=["sessions", "active"]).output

    session = session_service.start_session(pc.id, cashier_id)
    result = runner.invoke(args=["sessions", "active"])
    assert session.session_number in result.output


def test_rates_set_and_show(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["rates", "show"])
    assert "1 USD = 90,000 LBP" in result.output
    assert "No rate changes recorded" in result.output

    result = runner.invoke(args=["rates", "set", "--rate", "89500", "--user-id", "1", "--notes", "Morning"])
    assert result.exit_code == 0
    assert "PASS Exchange rate set: 1 USD = 89,500 LBP (was 90,000)" in result.output

    result = runner.invoke(args=["rates", "show"])
    assert "1 USD = 89,500 LBP" in result.output
    assert "Morning" in result.output

    result = runner.invoke(args=["rates", "set", "--rate", "0", "--user-id", "1"])
    assert "FAIL" in result.output
