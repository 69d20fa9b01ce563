"""Rendering of the caller's notification messages."""

from html import escape
from typing import Any, Optional

from ..models.chain import ChainConfig
from ..models.settlement import ChainStatus, RunSummary, SettlementRoundResult
from ..utils.time import format_day, utc_now_iso
from ..utils.units import display_amount
from .base import Notification, NotificationKind

# Error types used as the "Error Type" line of error notifications
PRECHECK_ERROR = "PreCheck Error"
TRANSACTION_FAILURE = "Transaction Failure"
TRANSACTION_EXECUTION_ERROR = "Transaction Execution Error"
CHAIN_PROCESSING_ERROR = "Chain Processing Error"


def short_hash(tx_hash: str) -> str:
    """0x1234...abcd style abbreviation of a transaction hash."""
    if len(tx_hash) <= 14:
        return tx_hash
    return f"{tx_hash[:6]}...{tx_hash[-4:]}"


def _html_block(title: str, rows: dict[str, Any]) -> str:
    lines = "".join(
        f"<p><strong>{escape(str(key))}:</strong> {escape(str(value if value is not None else 'N/A'))}</p>"
        for key, value in rows.items()
    )
    return f"<div><h3>{escape(title)}</h3>{lines}</div>"


def _text_block(rows: dict[str, Any]) -> str:
    return "\n".join(
        f"  {key}: {value if value is not None else 'N/A'}" for key, value in rows.items()
    )


def _footer(label: str) -> str:
    return f"<hr><p>Clocktower Caller - {escape(label)}</p>"


def balance_rows(result: SettlementRoundResult) -> dict[str, Any]:
    """Before -> after lines for the native balance and every tracked token."""
    rows: dict[str, Any] = {}

    if result.native_balance_before is not None or result.native_balance_after is not None:
        before = display_amount(result.native_balance_before) if result.native_balance_before is not None else "N/A"
        after = display_amount(result.native_balance_after) if result.native_balance_after is not None else "N/A"
        rows["ETH Balance"] = f"{before} -> {after}"

    for change in result.token_balances:
        rows[f"{change.symbol} Balance"] = f"{display_amount(change.before)} -> {display_amount(change.after)}"

    return rows


def success_message(chain: ChainConfig, result: SettlementRoundResult) -> Notification:
    """A settlement round finalised successfully."""
    tx_hash = result.transaction_ref or ""
    link = chain.explorer_link(tx_hash)

    details = {
        "Chain": chain.label,
        "Transaction Hash": tx_hash,
        "Transaction Link": link,
        "Recursion Depth": result.round_index,
        "Gas Used": result.resource_used,
        "Timestamp": utc_now_iso(),
    }
    balances = balance_rows(result)

    html = (
        "<div>"
        "<h2>Clocktower Remit Transaction Successful</h2>"
        f"<div><h3>Transaction Details</h3>"
        f"<p><strong>Chain:</strong> {escape(chain.label)}</p>"
        f"<p><strong>Transaction Hash:</strong> <a href=\"{escape(link)}\">{escape(short_hash(tx_hash))}</a></p>"
        f"<p><strong>Recursion Depth:</strong> {result.round_index}</p>"
        f"<p><strong>Timestamp:</strong> {escape(details['Timestamp'])}</p></div>"
        f"{_html_block('Balance Changes', balances)}"
        f"{_footer(chain.label + ' Chain Monitoring')}"
        "</div>"
    )

    return Notification(
        kind=NotificationKind.SUCCESS,
        subject=f"Clocktower Remit Success - {chain.label}",
        html=html,
        text=_text_block({**details, **balances}),
        chain=chain.name,
        details={**details, **balances},
    )


def no_obligations_message(chain: ChainConfig, current_day: int, next_unchecked_day: int) -> Notification:
    """Precheck found nothing due."""
    details = {
        "Chain": chain.label,
        "Current Day": f"{current_day} ({format_day(current_day)})",
        "Next Unchecked Day": f"{next_unchecked_day} ({format_day(next_unchecked_day)})",
        "Timestamp": utc_now_iso(),
    }

    html = (
        "<div>"
        "<h2>No Subscriptions Found for Today</h2>"
        f"{_html_block('Daily Check Results', details)}"
        "<p><strong>Status:</strong> No remit transaction was needed or executed.</p>"
        f"{_footer(chain.label + ' Chain Monitoring')}"
        "</div>"
    )

    return Notification(
        kind=NotificationKind.NO_OBLIGATIONS,
        subject=f"Clocktower No Subscriptions - {chain.label}",
        html=html,
        text=_text_block(details),
        chain=chain.name,
        details=details,
    )


def error_message(
    chain_label: str,
    error_type: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
    chain: Optional[str] = None
) -> Notification:
    """An error worth an operator's attention."""
    timestamp = utc_now_iso()
    header = {"Chain": chain_label, "Error Type": error_type, "Timestamp": timestamp}
    extra = details or {}

    html = (
        "<div>"
        "<h2>Clocktower Execution Error</h2>"
        f"{_html_block('Error Information', header)}"
        f"<div><h3>Error Message</h3><pre>{escape(message)}</pre></div>"
        f"{_html_block('Additional Details', extra) if extra else ''}"
        "<p><strong>Action Required:</strong> Please investigate this error and ensure "
        "the Clocktower caller is functioning correctly.</p>"
        f"{_footer(chain_label + ' Chain Monitoring')}"
        "</div>"
    )

    return Notification(
        kind=NotificationKind.ERROR,
        subject=f"Clocktower Error - {chain_label}",
        html=html,
        text=f"{error_type}: {message}\n{_text_block({**header, **extra})}",
        chain=chain,
        details={**header, "Error Message": message, **extra},
    )


def describe_outcome(status: ChainStatus, rounds_succeeded: int, error: Optional[str]) -> str:
    if status == ChainStatus.FAILED:
        return f"Failed ({error})" if error else "Failed"
    if status == ChainStatus.EXECUTED:
        return f"Executed {rounds_succeeded} tx(s)"
    return "No subscriptions"


def summary_message(summary: RunSummary) -> Notification:
    """Run-level summary across all chains."""
    subject = (
        f"Clocktower Summary - {summary.executed} executed, "
        f"{summary.no_obligations} none, {summary.failed} failed"
    )

    rows = []
    lines = []
    for outcome in summary.outcomes:
        label = outcome.display_name or outcome.chain
        text = describe_outcome(outcome.status, outcome.rounds_succeeded, outcome.error)
        rows.append(
            f"<tr><td>{escape(outcome.status.value)}</td><td>{escape(label)}</td><td>{escape(text)}</td></tr>"
        )
        lines.append(f"  {label}: {text}")

    overall = {
        "Run ID": summary.run_id,
        "Total Chains": summary.total,
        "Executed Transactions": summary.executed,
        "No Subscriptions": summary.no_obligations,
        "Failed": summary.failed,
        "Elapsed (ms)": summary.elapsed_ms,
        "Timestamp": utc_now_iso(),
    }

    if summary.failed:
        closing = f"<p><strong>Warning:</strong> {summary.failed} chain(s) failed execution. Check logs for details.</p>"
    else:
        closing = "<p><strong>All chains executed successfully.</strong></p>"

    html = (
        "<div>"
        "<h2>Multi-Chain Execution Summary</h2>"
        f"{_html_block('Overall Results', overall)}"
        "<table><thead><tr><th>Status</th><th>Chain</th><th>Result</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>"
        f"{closing}"
        f"{_footer('Multi-Chain Monitoring')}"
        "</div>"
    )

    return Notification(
        kind=NotificationKind.SUMMARY,
        subject=subject,
        html=html,
        text=_text_block(overall) + "\n" + "\n".join(lines),
        details=overall,
    )


def test_message() -> Notification:
    """Message used to verify notification configuration."""
    return Notification(
        kind=NotificationKind.TEST,
        subject="Clocktower Caller - Test Email",
        html="<p>This is a test email to verify email configuration.</p>",
        text="This is a test message to verify notification configuration.",
    )
