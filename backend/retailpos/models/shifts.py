from __future__ import annotations

from ..extensions import db


class Shift(db.Model):
    """
    Cash-drawer reconciliation for one operating period.

    LIFECYCLE: a row is written once, by close_shift, with status CLOSED and
    is never modified afterwards. The period is [start_time, end_time] in
    epoch ms; the next shift starts at this shift's end_time.

    All amounts in cents. `variance` compares cash and card only; wallet,
    instapay and credit expectations are informational.
    """
    __tablename__ = "shifts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    start_time = db.Column(db.BigInteger, nullable=False)
    end_time = db.Column(db.BigInteger, nullable=False, index=True)

    expected_cash = db.Column(db.Integer, nullable=False, default=0)
    actual_cash = db.Column(db.Integer, nullable=False, default=0)
    expected_card = db.Column(db.Integer, nullable=False, default=0)
    actual_card = db.Column(db.Integer, nullable=False, default=0)
    expected_wallet = db.Column(db.Integer, nullable=False, default=0)
    expected_instapay = db.Column(db.Integer, nullable=False, default=0)
    expected_credit = db.Column(db.Integer, nullable=False, default=0)
    total_expenses = db.Column(db.Integer, nullable=False, default=0)
    variance = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="CLOSED")

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "expected_cash": self.expected_cash,
            "actual_cash": self.actual_cash,
            "expected_card": self.expected_card,
            "actual_card": self.actual_card,
            "expected_wallet": self.expected_wallet,
            "expected_instapay": self.expected_instapay,
            "expected_credit": self.expected_credit,
            "total_expenses": self.total_expenses,
            "variance": self.variance,
            "status": self.status,
        }
