import asyncio
import logging
import os

from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes

from admission import AdmissionPipeline, SubmitRequest
from app import create_app
from errors import LotteryError
from utils import parse_date

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TOKEN = os.getenv("TOKEN")
BOT_ROLE = os.getenv("BOT_ROLE", "sub")

USAGE_BET = "用法 / usage: /bet <draw> <type> <number> [count] [set]\n例如 /bet DEAR1 SUPER 123 5"
USAGE_WINNINGS = "用法 / usage: /winnings <YYYY-MM-DD> [YYYY-MM-DD]"


def parse_bet_args(args, agent):
    """``/bet DEAR1 BOX 123 2 set`` → SubmitRequest payload."""
    if len(args) < 3:
        raise ValueError(USAGE_BET)
    draw, bet_type, number = args[0], args[1], args[2]
    rest = [a.lower() for a in args[3:]]
    count = next((a for a in rest if a.isdigit()), "1")
    return {
        "loggedInUser": agent,
        "loggedInUserType": BOT_ROLE,
        "timeLabel": draw,
        "entries": [{"type": bet_type, "number": number, "count": count, "isSet": "set" in rest}],
    }


def format_winnings(report):
    if not report["bills"]:
        return "🕘 暂无中奖 / no winnings."
    lines = [f"🎉 {report['fromDate']} → {report['toDate']}"]
    for bill in report["bills"]:
        lines.append(f"#{bill['billNo']} {bill['drawName']} {bill['date']}: {bill['total']}")
        for w in bill["winnings"]:
            lines.append(f"  {w['type']} {w['number']} x{w['count']} → {w['winAmount']} ({w['winType']})")
    lines.append(f"合计 / total: {report['grandTotal']}")
    return "\n".join(lines)


def _agent(update):
    user = update.effective_user
    return user.username or str(user.id)


async def bet(update: Update, context: ContextTypes.DEFAULT_TYPE):
    flask_app = context.application.bot_data["flask_app"]
    try:
        payload = parse_bet_args(context.args, _agent(update))
    except ValueError as exc:
        await update.message.reply_text(str(exc))
        return

    def _submit():
        with flask_app.app_context():
            cfg = flask_app.config
            pipeline = AdmissionPipeline(
                clock=flask_app.extensions["clock"],
                default_cap=cfg["DEFAULT_TICKET_CAP"],
                bill_start=cfg["BILL_START"],
            )
            return pipeline.submit(SubmitRequest.from_dict(payload)).to_dict()

    try:
        result = await asyncio.to_thread(_submit)
    except LotteryError as exc:
        logger.info("bet from %s rejected: %s", payload["loggedInUser"], exc.message)
        await update.message.reply_text(f"❌ {exc}")
        return
    logger.info("bet from %s saved as bill %s", payload["loggedInUser"], result["billNo"])
    await update.message.reply_text(f"✅ 下注成功 / saved: bill #{result['billNo']} for {result['date']}")


async def winnings(update: Update, context: ContextTypes.DEFAULT_TYPE):
    flask_app = context.application.bot_data["flask_app"]
    args = context.args
    if not args:
        await update.message.reply_text(USAGE_WINNINGS)
        return
    agent = _agent(update)

    def _report():
        start = parse_date(args[0], "fromDate")
        end = parse_date(args[1], "toDate") if len(args) > 1 else start
        with flask_app.app_context():
            return flask_app.extensions["reports"].report(
                "winning", from_date=start, to_date=end, agent=agent)

    try:
        report = await asyncio.to_thread(_report)
    except LotteryError as exc:
        await update.message.reply_text(f"❌ {exc}")
        return
    await update.message.reply_text(format_winnings(report))


# 启动入口
def main():
    app = Application.builder().token(TOKEN).build()
    app.bot_data["flask_app"] = create_app({"SCHEDULER_ENABLED": False})
    app.add_handler(CommandHandler("bet", bet))
    app.add_handler(CommandHandler("winnings", winnings))
    app.run_polling()


if __name__ == "__main__":
    main()
