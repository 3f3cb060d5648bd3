import logging
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from flask import Flask, current_app, jsonify, request

import admin
import entries
from admission import AdmissionPipeline, SubmitRequest
from cache import TTLCache
from config import configure
from db import format_bill_no, peek_bill_no
from errors import LotteryError, ValidationError
from models import db
from rates import PER_AGENT
from reports import ReportAggregator
from utils import local_clock, parse_date

logger = logging.getLogger(__name__)


def create_app(overrides=None):
    app = Flask(__name__)
    configure(app, overrides)
    db.init_app(app)

    app.extensions["clock"] = app.config.get("CLOCK") or local_clock(app.config["TZ"])
    app.extensions["reports"] = ReportAggregator(
        cache=TTLCache(ttl=app.config["REPORT_CACHE_TTL"], maxsize=app.config["REPORT_CACHE_SIZE"]),
        default_rate=app.config["DEFAULT_RATE"],
    )

    app.register_error_handler(LotteryError, _lottery_error)
    _register_routes(app)

    if app.config["SCHEDULER_ENABLED"] and (not app.debug or os.environ.get("WERKZEUG_RUN_MAIN") == "true"):
        start_scheduler(app)
    return app


def start_scheduler(app):
    reports = app.extensions["reports"]

    def purge_report_cache():
        removed = reports.cache.purge()
        if removed:
            logger.info("🧹 purged %d expired reports", removed)

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        purge_report_cache,
        trigger=CronTrigger(minute="*", timezone=app.config["TZ"]),
        id="purge_report_cache",
        replace_existing=True,
    )
    scheduler.start()
    app.extensions["scheduler"] = scheduler
    logger.info("✅ APScheduler started")
    return scheduler


def _lottery_error(exc):
    return jsonify(exc.to_dict()), exc.status_code


def _now():
    return current_app.extensions["clock"]()


def _reports():
    return current_app.extensions["reports"]


def _body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON body required")
    return data


def _arg_date(data, name, required=True):
    value = data.get(name)
    if not value:
        if required:
            raise ValidationError(f"{name} is required")
        return None
    return parse_date(value, name)


def _register_routes(app):

    # -- admission ------------------------------------------------------

    @app.route('/entries/save-validated', methods=['POST'])
    def save_validated():
        cfg = current_app.config
        pipeline = AdmissionPipeline(
            clock=current_app.extensions["clock"],
            default_cap=cfg["DEFAULT_TICKET_CAP"],
            bill_start=cfg["BILL_START"],
        )
        result = pipeline.submit(SubmitRequest.from_dict(_body()))
        return jsonify(result.to_dict())

    @app.route('/next-bill')
    def next_bill():
        return jsonify({"billNo": format_bill_no(peek_bill_no(current_app.config["BILL_START"]))})

    # -- entries --------------------------------------------------------

    @app.route('/entries/<int:entry_id>/invalidate', methods=['PATCH'])
    def invalidate_entry(entry_id):
        entries.invalidate(entry_id)
        return jsonify({"message": "Marked as invalid"})

    @app.route('/entries/<int:entry_id>/count', methods=['PUT'])
    def update_entry_count(entry_id):
        data = _body()
        entry = entries.update_count(entry_id, data.get("count"), data.get("userType"), _now())
        return jsonify({"message": "Count updated successfully", "entry": entry.to_dict()})

    @app.route('/entries/<int:entry_id>/<user_type>', methods=['DELETE'])
    def delete_entry(entry_id, user_type):
        entries.delete_entry(entry_id, user_type, _now())
        return jsonify({"message": "Entry deleted successfully"})

    @app.route('/bills/<bill_no>', methods=['DELETE'])
    def delete_bill(bill_no):
        deleted = entries.delete_bill(bill_no)
        return jsonify({"message": "Entries deleted successfully", "deleted": deleted})

    @app.route('/count-by-number', methods=['POST'])
    def count_by_number():
        data = _body()
        counts = entries.count_by_number(data.get("keys"), _arg_date(data, "date"), data.get("timeLabel"))
        return jsonify(counts)

    @app.route('/report/count')
    def count_report():
        args = request.args
        rows = entries.count_report(
            day=_arg_date(args, "date", required=False),
            draw_label=args.get("time"),
            agent=args.get("agent"),
            group=args.get("group") == "true",
            number=args.get("number"),
        )
        return jsonify(rows)

    # -- reports --------------------------------------------------------

    @app.route('/report/netpay-multiday', methods=['POST'])
    def net_pay():
        data = _body()
        mode = data.get("mode") or PER_AGENT
        report = _reports().net_pay(
            _arg_date(data, "fromDate"), _arg_date(data, "toDate"),
            draws=data.get("time"),
            agent=data.get("agent"),
            mode=mode,
            reference_agent=data.get("loggedInUser"),
        )
        return jsonify(report)

    @app.route('/report/winning', methods=['POST'])
    def winning_report():
        data = _body()
        report = _reports().winning_report(
            _arg_date(data, "fromDate"), _arg_date(data, "toDate"),
            draw=data.get("time"), agent=data.get("agent"))
        return jsonify(report)

    @app.route('/report/sales')
    def sales_report():
        args = request.args
        report = _reports().sales_report(
            _arg_date(args, "fromDate"), _arg_date(args, "toDate"),
            agent=args.get("createdBy"),
            draw=args.get("timeLabel"),
            reference_agent=args.get("loggedInUser"))
        return jsonify(report)

    # -- block windows --------------------------------------------------

    @app.route('/block-times', methods=['POST'])
    def set_block_times():
        saved = admin.set_block_times(_body().get("blocks"))
        return jsonify({"message": "Block times saved/updated successfully",
                        "data": [r.to_dict() for r in saved]})

    @app.route('/block-times')
    def all_block_times():
        return jsonify([r.to_dict() for r in admin.list_block_times()])

    @app.route('/block-times/<draw_label>')
    @app.route('/block-times/<draw_label>/<role>')
    def block_times_for(draw_label, role=None):
        rows = admin.list_block_times(draw_label, role)
        if role is None:
            return jsonify([r.to_dict() for r in rows])
        if not rows:
            return jsonify({"message": "Block time not found"}), 404
        return jsonify(rows[0].to_dict())

    # -- blocked dates --------------------------------------------------

    @app.route('/blocked-dates')
    def blocked_dates():
        return jsonify([r.to_dict() for r in admin.list_blocked_dates()])

    @app.route('/blocked-dates', methods=['POST'])
    def add_blocked_date():
        data = _body()
        created = admin.add_blocked_date(data.get("ticket"), data.get("date"))
        if not created:
            return jsonify({"status": 2, "message": "Already blocked", "blockedCount": 0}), 201
        return jsonify({"status": 1, "message": "Blocked successfully",
                        "blockedCount": len(created)}), 201

    @app.route('/blocked-dates/<int:blocked_id>', methods=['DELETE'])
    def delete_blocked_date(blocked_id):
        admin.delete_blocked_date(blocked_id)
        return jsonify({"message": "Deleted successfully"})

    # -- ticket limits --------------------------------------------------

    @app.route('/ticket-limit', methods=['POST'])
    def save_ticket_limit():
        data = _body()
        record = admin.save_ticket_limit(data.get("group1"), data.get("group2"),
                                         data.get("group3"), data.get("createdBy"))
        return jsonify({"message": "Ticket limit saved successfully", "data": record.to_dict()})

    @app.route('/ticket-limit')
    def latest_ticket_limit():
        return jsonify(admin.latest_ticket_limit().to_dict())

    # -- per-agent overrides --------------------------------------------

    @app.route('/block-numbers')
    def list_overrides():
        rows = admin.list_overrides(request.args.get("createdBy"), request.args.get("drawTime"))
        return jsonify({"success": True, "data": [r.to_dict() for r in rows], "count": len(rows)})

    @app.route('/block-numbers', methods=['POST'])
    def add_overrides():
        data = _body()
        rows = admin.add_overrides(data.get("blockData"), data.get("selectedGroup"),
                                   data.get("drawTime"), data.get("createdBy"))
        return jsonify({"success": True, "message": "Blocked numbers added successfully",
                        "data": [r.to_dict() for r in rows], "count": len(rows)}), 201

    @app.route('/block-numbers/<int:override_id>', methods=['PUT'])
    def update_override(override_id):
        data = _body()
        row = admin.update_override(override_id, count=data.get("count"),
                                    number=data.get("number"), is_active=data.get("isActive"))
        return jsonify({"success": True, "data": row.to_dict()})

    @app.route('/block-numbers/<int:override_id>', methods=['DELETE'])
    def delete_override(override_id):
        row = admin.deactivate_override(override_id)
        return jsonify({"success": True, "message": "Blocked number deleted successfully",
                        "data": row.to_dict()})

    @app.route('/block-numbers/bulk', methods=['DELETE'])
    def bulk_delete_overrides():
        deleted = admin.bulk_delete_overrides(_body().get("ids"))
        return jsonify({"success": True, "deletedCount": deleted})

    # -- rates ----------------------------------------------------------

    @app.route('/rate-master', methods=['POST'])
    def save_rate_master():
        data = _body()
        row = admin.save_rates(data.get("user"), data.get("draw"), data.get("rates"))
        return jsonify({"message": "Rate master saved/updated successfully", "data": row.to_dict()})

    @app.route('/rate-master')
    def get_rate_master():
        row = admin.get_rates(request.args.get("user"), request.args.get("draw"))
        if row is None:
            return jsonify({"message": "No rate found"})
        return jsonify(row.to_dict())

    # -- results --------------------------------------------------------

    @app.route('/results', methods=['POST'])
    def save_result():
        data = _body()
        row = admin.save_result(data.get("date"), data.get("time"),
                                data.get("prizes"), data.get("others"))
        return jsonify({"message": "Result saved successfully", "result": row.to_dict()})

    @app.route('/results')
    def get_result():
        row = admin.get_result(request.args.get("date"), request.args.get("time"))
        return jsonify(row.to_dict())

    # -- agents ---------------------------------------------------------

    @app.route('/agents', methods=['POST'])
    def add_agent():
        data = _body()
        agent = admin.add_agent(data.get("username"), data.get("createdBy"), data.get("scheme"))
        return jsonify(agent.to_dict()), 201

    @app.route('/agents')
    def list_agents():
        return jsonify([a.to_dict() for a in admin.list_agents(request.args.get("createdBy"))])


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app = create_app()
    with app.app_context():
        db.create_all()
    app.run(debug=False)
