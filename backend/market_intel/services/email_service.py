"""Email delivery of the daily intelligence digest.

Sends emails synchronously (designed to be called from Celery tasks)
or from async code via asyncio.to_thread.
"""

import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from html import escape

from market_intel.config import Settings, get_settings
from market_intel.schemas.intelligence import DailyAnalysis, GPRDataPoint, category_display_name

logger = logging.getLogger("market_intel.email")

DIGEST_TOP_ARTICLES = 5


# ── HTML Templates ──

_BASE_TEMPLATE = """
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"></head>
<body style="margin:0; padding:0; font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif; background:#0f172a; color:#e2e8f0;">
<div style="max-width:600px; margin:0 auto; padding:32px 24px;">
  <div style="text-align:center; margin-bottom:32px;">
    <h1 style="color:#60a5fa; font-size:28px; margin:0;">Market Intelligence</h1>
    <p style="color:#64748b; font-size:12px; margin:4px 0 0;">Daily Briefing</p>
  </div>
  <div style="background:#1e293b; border-radius:12px; padding:24px; border:1px solid #334155;">
    {content}
  </div>
  {action_button}
  <div style="text-align:center; margin-top:32px; padding-top:24px; border-top:1px solid #1e293b;">
    <p style="color:#475569; font-size:11px; margin:0;">
      This is an automated market intelligence digest.<br>
      It is informational only and does not constitute financial advice.
    </p>
  </div>
</div>
</body>
</html>
"""

_ACTION_BUTTON = """
<div style="text-align:center; margin-top:20px;">
  <a href="{url}" style="display:inline-block; background:#3b82f6; color:white; padding:12px 28px; border-radius:8px; text-decoration:none; font-weight:600; font-size:14px;">
    {label}
  </a>
</div>
"""

_ROW = (
    '<tr><td style="padding:8px 0; color:#94a3b8; font-size:13px;">{label}</td>'
    '<td style="padding:8px 0; text-align:right; color:{color}; font-weight:600;">{value}</td></tr>'
)


def _render_template(content_html: str, action_url: str | None = None, action_label: str = "View Dashboard") -> str:
    """Render email content into the base template."""
    btn = ""
    if action_url:
        btn = _ACTION_BUTTON.format(url=action_url, label=action_label)
    return _BASE_TEMPLATE.format(content=content_html, action_button=btn)


def _score_color(value: float) -> str:
    if value > 0:
        return "#22c55e"
    if value < 0:
        return "#ef4444"
    return "#f1f5f9"


# ── Template builders ──

def template_daily_briefing(
    analysis: DailyAnalysis,
    gpr: GPRDataPoint | None = None,
    action_url: str | None = None,
) -> tuple[str, str]:
    """Returns (subject, html_body) for the daily digest."""
    sentiment = analysis.strategist_report.market_sentiment

    rows = [_ROW.format(label="Overall sentiment", value=f"{sentiment.overall:+d}", color=_score_color(sentiment.overall))]
    for category, score in sorted(sentiment.by_category.items()):
        rows.append(_ROW.format(
            label=escape(category_display_name(category)), value=f"{score:+d}", color=_score_color(score),
        ))
    if gpr is not None:
        rows.append(_ROW.format(label="Geopolitical risk", value=f"{gpr.score}/100", color="#fbbf24"))

    paragraphs = "".join(
        f'<p style="color:#f1f5f9; font-size:14px; line-height:1.6; margin:12px 0;">{escape(p.strip())}</p>'
        for p in analysis.briefing.split("\n\n") if p.strip()
    )

    trends = "".join(
        f'<li style="margin:4px 0;"><strong>{escape(t.name)}</strong> '
        f'<span style="color:#94a3b8;">({t.momentum}, {t.confidence:.0f}%)</span></li>'
        for t in analysis.trend_report.trends
    )

    top = sorted(analysis.enriched_articles, key=lambda a: a.impact_score, reverse=True)[:DIGEST_TOP_ARTICLES]
    headlines = "".join(
        f'<li style="margin:4px 0;">{escape(a.ticker)}: {escape(a.headline)} '
        f'<span style="color:#94a3b8;">(impact {a.impact_score:.0f})</span></li>'
        for a in top
    )

    content = f"""
    <h2 style="margin:0 0 12px; font-size:20px; color:#f1f5f9;">{analysis.date.isoformat()}</h2>
    {paragraphs}
    <table style="width:100%; margin-top:16px; border-collapse:collapse;">{''.join(rows)}</table>
    """
    if trends:
        content += f'<h3 style="color:#60a5fa; font-size:15px; margin:20px 0 8px;">Trends</h3><ul style="padding-left:18px;">{trends}</ul>'
    if headlines:
        content += f'<h3 style="color:#60a5fa; font-size:15px; margin:20px 0 8px;">Top Stories</h3><ul style="padding-left:18px;">{headlines}</ul>'

    subject = f"[Market Intel] {analysis.date.isoformat()} Briefing (sentiment {sentiment.overall:+d})"
    return subject, _render_template(content, action_url=action_url)


def should_send_digest(
    analysis: DailyAnalysis,
    gpr: GPRDataPoint | None = None,
    settings: Settings | None = None,
) -> bool:
    """Digest goes out when forced by config, on elevated GPR, or on a high-impact article."""
    settings = settings or get_settings()
    if settings.digest_always_send:
        return True
    if gpr is not None and gpr.score >= settings.digest_gpr_threshold:
        return True
    return any(a.impact_score >= settings.digest_impact_threshold for a in analysis.enriched_articles)


# ── Sending ──

def send_email(to_address: str, subject: str, html_body: str) -> bool:
    """Send an email via SMTP. Returns True on success.

    This is synchronous: call from Celery tasks or via asyncio.to_thread.
    """
    settings = get_settings()

    if not settings.smtp_host:
        logger.debug("SMTP not configured, skipping email to %s", to_address)
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.smtp_from
    msg["To"] = to_address
    msg.attach(MIMEText(html_body, "html"))

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_user and settings.smtp_password:
                server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(msg)
        logger.info("Email sent to %s: %s", to_address, subject)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email to %s: %s", to_address, e)
        return False


def send_daily_digest(
    analysis: DailyAnalysis,
    gpr: GPRDataPoint | None = None,
    recipients: list[str] | None = None,
    force: bool = False,
) -> int:
    """Send the digest to each recipient; returns how many were delivered."""
    settings = get_settings()
    recipients = recipients if recipients is not None else settings.digest_recipients
    if not recipients:
        logger.info("No digest recipients configured")
        return 0
    if not force and not should_send_digest(analysis, gpr, settings):
        logger.info("Digest for %s below alert thresholds, not sent", analysis.date)
        return 0

    subject, html = template_daily_briefing(analysis, gpr)
    sent = sum(1 for to in recipients if send_email(to, subject, html))
    logger.info("Digest for %s sent to %d/%d recipients", analysis.date, sent, len(recipients))
    return sent
