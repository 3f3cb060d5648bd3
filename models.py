from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.sql import func

db = SQLAlchemy()


class Agent(db.Model):
    __tablename__ = 'agents'
    id         = db.Column(db.Integer, primary_key=True)
    username   = db.Column(db.String(64), unique=True, nullable=False, index=True)
    created_by = db.Column(db.String(64), index=True)      # parent agent username
    scheme     = db.Column(db.String(32), default="Scheme 1")
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {"username": self.username, "createdBy": self.created_by, "scheme": self.scheme}


class BetEntry(db.Model):
    __tablename__ = 'entries'
    id             = db.Column(db.Integer, primary_key=True)
    number         = db.Column(db.String(3), nullable=False)
    bet_type       = db.Column(db.String(8), nullable=False)     # SUPER, BOX, A, B, C, AB, BC, AC
    count          = db.Column(db.Integer, nullable=False)
    draw_label     = db.Column(db.String(32), nullable=False)    # canonical, e.g. "KERALA 3 PM"
    time_code      = db.Column(db.String(16))
    bill_no        = db.Column(db.Integer, nullable=False, index=True)
    created_by     = db.Column(db.String(64), nullable=False, index=True)
    name           = db.Column(db.String(64))
    rate           = db.Column(db.Numeric(12, 2))
    effective_date = db.Column(db.Date, nullable=False, index=True)
    is_valid       = db.Column(db.Boolean, nullable=False, default=True)
    created_at     = db.Column(db.DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "number": self.number,
            "type": self.bet_type,
            "count": self.count,
            "drawLabel": self.draw_label,
            "timeCode": self.time_code,
            "billNo": f"{self.bill_no:05d}",
            "createdBy": self.created_by,
            "name": self.name,
            "rate": float(self.rate) if self.rate is not None else None,
            "date": self.effective_date.isoformat(),
            "isValid": self.is_valid,
        }


class DrawWindow(db.Model):
    __tablename__ = 'block_times'
    id           = db.Column(db.Integer, primary_key=True)
    draw_label   = db.Column(db.String(32), nullable=False)
    role         = db.Column(db.String(16), nullable=False)      # master | sub | ...
    block_time   = db.Column(db.String(5), nullable=False)       # HH:MM
    unblock_time = db.Column(db.String(5), nullable=False)       # HH:MM
    __table_args__ = (db.UniqueConstraint('draw_label', 'role', name='_draw_role_uc'),)

    def to_dict(self):
        return {
            "id": self.id,
            "drawLabel": self.draw_label,
            "type": self.role,
            "blockTime": self.block_time,
            "unblockTime": self.unblock_time,
        }


class TicketLimit(db.Model):
    __tablename__ = 'ticket_limits'
    id         = db.Column(db.Integer, primary_key=True)
    group1     = db.Column(db.JSON, nullable=False)   # {"A": "100", "B": ..., "C": ...}
    group2     = db.Column(db.JSON, nullable=False)   # {"AB": ..., "BC": ..., "AC": ...}
    group3     = db.Column(db.JSON, nullable=False)   # {"SUPER": ..., "BOX": ...}
    created_by = db.Column(db.String(64))
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    def caps(self, default_cap=9999):
        """Merged bet-type → cap mapping; blank or missing values use ``default_cap``."""
        merged = {}
        for group in (self.group1, self.group2, self.group3):
            merged.update(group or {})
        caps = {}
        for bet_type, raw in merged.items():
            try:
                caps[bet_type.upper()] = int(raw)
            except (TypeError, ValueError):
                caps[bet_type.upper()] = default_cap
        return caps

    def to_dict(self):
        return {
            "id": self.id,
            "group1": self.group1,
            "group2": self.group2,
            "group3": self.group3,
            "createdBy": self.created_by,
        }


class GlobalQuota(db.Model):
    __tablename__ = 'daily_limit_usage'
    id        = db.Column(db.Integer, primary_key=True)
    date      = db.Column(db.Date, nullable=False)
    bet_type  = db.Column(db.String(8), nullable=False)
    number    = db.Column(db.String(3), nullable=False)
    remaining = db.Column(db.Integer, nullable=False)
    __table_args__ = (db.UniqueConstraint('date', 'bet_type', 'number', name='_usage_key_uc'),)


class UserQuota(db.Model):
    __tablename__ = 'daily_user_limits'
    id        = db.Column(db.Integer, primary_key=True)
    date      = db.Column(db.Date, nullable=False)
    agent     = db.Column(db.String(64), nullable=False)
    bet_type  = db.Column(db.String(8), nullable=False)
    number    = db.Column(db.String(3), nullable=False)
    remaining = db.Column(db.Integer, nullable=False)
    __table_args__ = (
        db.UniqueConstraint('date', 'agent', 'bet_type', 'number', name='_user_usage_key_uc'),
    )


class UserQuotaOverride(db.Model):
    __tablename__ = 'block_numbers'
    id         = db.Column(db.Integer, primary_key=True)
    bet_type   = db.Column(db.String(8), nullable=False)
    number     = db.Column(db.String(3), nullable=False)
    count      = db.Column(db.Integer, nullable=False)
    group      = db.Column(db.String(8), nullable=False)       # group1 | group2 | group3
    draw_label = db.Column(db.String(32), nullable=False)
    agent      = db.Column(db.String(64), nullable=False)
    is_active  = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    __table_args__ = (
        db.Index('ix_override_lookup', 'bet_type', 'number', 'draw_label', 'agent'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "field": self.bet_type,
            "number": self.number,
            "count": self.count,
            "group": self.group,
            "drawTime": self.draw_label,
            "createdBy": self.agent,
            "isActive": self.is_active,
        }


class BlockedDate(db.Model):
    __tablename__ = 'block_dates'
    id     = db.Column(db.Integer, primary_key=True)
    ticket = db.Column(db.String(16), nullable=False)   # LSK3, DEAR1, DEAR6, DEAR8
    date   = db.Column(db.Date, nullable=False)
    __table_args__ = (db.UniqueConstraint('ticket', 'date', name='_ticket_date_uc'),)

    def to_dict(self):
        return {"id": self.id, "ticket": self.ticket, "date": self.date.isoformat()}


class DrawResult(db.Model):
    __tablename__ = 'results'
    id         = db.Column(db.Integer, primary_key=True)
    date       = db.Column(db.Date, nullable=False)
    draw_label = db.Column(db.String(32), nullable=False)   # result convention, e.g. "DEAR 1PM"
    prizes     = db.Column(db.JSON, nullable=False)         # positions 1..5
    others     = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    __table_args__ = (db.UniqueConstraint('date', 'draw_label', name='_date_draw_uc'),)

    def to_dict(self):
        return {
            "date": self.date.isoformat(),
            "time": self.draw_label,
            "prizes": self.prizes,
            "others": self.others or [],
        }


class RateTable(db.Model):
    __tablename__ = 'rate_master'
    id         = db.Column(db.Integer, primary_key=True)
    agent      = db.Column(db.String(64), nullable=False)
    draw_label = db.Column(db.String(32), nullable=False)   # canonical draw key
    rates      = db.Column(db.JSON, nullable=False)         # {"SUPER": 8.5, "A": 11, ...}
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    __table_args__ = (db.UniqueConstraint('agent', 'draw_label', name='_agent_draw_uc'),)

    def to_dict(self):
        return {
            "user": self.agent,
            "draw": self.draw_label,
            "rates": [{"label": k, "rate": v} for k, v in (self.rates or {}).items()],
        }


class BillSequence(db.Model):
    __tablename__ = 'bill_counter'
    name    = db.Column(db.String(16), primary_key=True)
    counter = db.Column(db.Integer, nullable=False)
