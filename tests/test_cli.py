import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from library_service.main import app

runner = CliRunner()


@pytest.fixture
def db(tmp_path, request):
    # Her test için benzersiz bir veritabanı dosyası
    return str(tmp_path / f"cli_{request.node.name}.db")


def invoke(db, *args):
    return runner.invoke(app, ["--db", db, *args])


@pytest.fixture
def stocked(db):
    assert invoke(db, "add-book", "Dune", "Frank Herbert", "9780441172719", "--year", "1965").exit_code == 0
    assert invoke(db, "add-member", "Alice", "alice@example.com").exit_code == 0
    return db


def test_list_no_books(db):
    result = invoke(db, "list")
    assert result.exit_code == 0
    assert "No books in library." in result.stdout


def test_add_book_success(db):
    result = invoke(db, "add-book", "Dune", "Frank Herbert", "978-0-441-17271-9")
    assert result.exit_code == 0
    assert "Successfully added: Dune by Frank Herbert" in result.stdout

    listing = invoke(db, "list")
    assert "9780441172719 - Dune by Frank Herbert [AVAILABLE]" in listing.stdout


def test_add_invalid_book_prints_violations(db):
    result = invoke(db, "add-book", "Dune", "Frank Herbert", "12345")
    assert result.exit_code == 1
    assert "Error: Invalid book: isbn" in result.stdout
    assert "- isbn:" in result.stdout


def test_add_duplicate_book(stocked):
    result = invoke(stocked, "add-book", "Dune", "Frank Herbert", "9780441172719")
    assert result.exit_code == 1
    assert "already exists" in result.stdout


def test_find_book(stocked):
    result = invoke(stocked, "find", "9780441172719")
    assert result.exit_code == 0
    assert "Book Found" in result.stdout
    assert "title: Dune" in result.stdout
    assert "author: Frank Herbert" in result.stdout


def test_find_book_not_found(db):
    result = invoke(db, "find", "0306406152")
    assert result.exit_code == 1
    assert "Book with ISBN 0306406152 not found." in result.stdout


def test_remove_book(stocked):
    result = invoke(stocked, "remove", "9780441172719")
    assert result.exit_code == 0
    assert "Book with ISBN 9780441172719 has been removed." in result.stdout
    assert invoke(stocked, "remove", "9780441172719").exit_code == 1


def test_checkout_and_return(stocked):
    result = invoke(stocked, "checkout", "9780441172719", "alice@example.com")
    assert result.exit_code == 0
    assert "Checked out ISBN 9780441172719 to alice@example.com" in result.stdout

    again = invoke(stocked, "checkout", "9780441172719", "alice@example.com")
    assert again.exit_code == 1
    assert "already checked out" in again.stdout

    removed = invoke(stocked, "remove", "9780441172719")
    assert removed.exit_code == 1
    assert "on loan" in removed.stdout

    returned = invoke(stocked, "return", "9780441172719")
    assert returned.exit_code == 0
    assert "Returned ISBN 9780441172719. No late fee." in returned.stdout


def test_return_book_not_on_loan(stocked):
    result = invoke(stocked, "return", "9780441172719")
    assert result.exit_code == 1
    assert "Error: Book is not checked out" in result.stdout


def test_checkout_unknown_member(stocked):
    result = invoke(stocked, "checkout", "9780441172719", "ghost@example.com")
    assert result.exit_code == 1
    assert "Member with email ghost@example.com not found." in result.stdout


def test_add_member_with_type(db):
    result = invoke(db, "add-member", "Sam", "sam@example.edu", "--type", "student")
    assert result.exit_code == 0
    assert "(STUDENT)" in result.stdout


def test_loans_for_member(stocked):
    invoke(stocked, "checkout", "9780441172719", "alice@example.com")
    result = invoke(stocked, "loans", "alice@example.com")
    assert result.exit_code == 0
    assert "status: ACTIVE" in result.stdout


def test_loans_json_is_single_array(stocked):
    invoke(stocked, "checkout", "9780441172719", "alice@example.com")
    invoke(stocked, "return", "9780441172719")
    invoke(stocked, "checkout", "9780441172719", "alice@example.com")
    result = runner.invoke(app, ["--db", stocked, "-o", "json", "loans", "alice@example.com"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert isinstance(payload, list)
    assert [loan["status"] for loan in payload] == ["RETURNED", "ACTIVE"]


def test_mark_overdue_command(stocked):
    invoke(stocked, "checkout", "9780441172719", "alice@example.com")
    result = invoke(stocked, "mark-overdue")
    assert result.exit_code == 0
    assert "Marked 0 loans overdue." in result.stdout


def test_search(stocked):
    result = invoke(stocked, "search", "dune")
    assert "9780441172719 - Dune by Frank Herbert" in result.stdout
    result = invoke(stocked, "search", "Frank Herbert", "--type", "author")
    assert "Dune" in result.stdout
    result = invoke(stocked, "search", "x", "--type", "genre")
    assert result.exit_code == 1
    assert "search_type" in result.stdout


def test_reports(stocked):
    assert "Total members: 1" in invoke(stocked, "report", "members").stdout
    assert "No overdue books." in invoke(stocked, "report", "overdue").stdout
    assert "Available Books:" in invoke(stocked, "report", "available").stdout
    assert invoke(stocked, "report", "weekly").exit_code == 1


def test_stats_plain(stocked):
    result = invoke(stocked, "stats")
    assert result.exit_code == 0
    assert "Total Books: 1" in result.stdout
    assert "Unique Authors: 1" in result.stdout


def test_json_output(stocked):
    result = runner.invoke(app, ["--db", stocked, "--output", "json", "list"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload[0]["isbn"] == "9780441172719"

    stats = json.loads(runner.invoke(app, ["--db", stocked, "-o", "json", "stats"]).stdout)
    assert stats["total_members"] == 1


def test_rich_output(stocked):
    result = runner.invoke(app, ["--db", stocked, "--output", "rich", "stats"])
    assert result.exit_code == 0
    assert "Total Books" in result.stdout


@patch("subprocess.run")
def test_serve_command(mock_subprocess_run, db):
    result = invoke(db, "serve", "--port", "8123")
    assert result.exit_code == 0
    assert "Starting API on http://" in result.stdout
    args = mock_subprocess_run.call_args.args[0]
    assert "uvicorn" in args
    assert "library_service.api:create_app" in args
    assert "8123" in args
    assert mock_subprocess_run.call_args.kwargs["env"]["LIBRARY_DB_FILE"] == db
