from datetime import datetime, timezone

from werkzeug.security import generate_password_hash, check_password_hash

from homenet import db


def utcnow():
    """Naive UTC timestamp, matching how the columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


COST_CATEGORIES = ('Cable Runs', 'Services', 'Centralization', 'Equipment', 'Deposits')
UNIT_TYPES = ('per-foot', 'per-run', 'per-unit', 'flat-fee', 'threshold')

QUOTE_STATUSES = ('pending', 'reviewed', 'approved', 'rejected', 'completed')
SCHEDULE_STATUSES = ('pending', 'confirmed', 'in-progress', 'completed', 'cancelled')
INVOICE_STATUSES = ('Draft', 'Sent', 'Paid', 'Overdue', 'Cancelled')
ADMIN_ROLES = ('admin', 'superadmin')
CONSULTATION_STATUSES = ('new', 'contacted', 'consultation-scheduled', 'quoted',
                         'booked', 'completed', 'closed')


class CostItem(db.Model):
    __tablename__ = 'cost_item'
    id              = db.Column(db.Integer, primary_key=True)
    code            = db.Column(db.String(50), unique=True, nullable=False)
    name            = db.Column(db.String(100), nullable=False)
    description     = db.Column(db.String(500))
    category        = db.Column(db.String(32), nullable=False)
    unit_type       = db.Column(db.String(16), nullable=False)
    unit_label      = db.Column(db.String(50))
    price           = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    material_cost   = db.Column(db.Numeric(10, 2), default=0)
    labor_hours     = db.Column(db.Numeric(6, 2), default=0)
    threshold_amount = db.Column(db.Numeric(10, 2))
    is_active       = db.Column(db.Boolean, nullable=False, default=True)
    sort_order      = db.Column(db.Integer, nullable=False, default=0)
    created_by      = db.Column(db.String(50))
    updated_by      = db.Column(db.String(50))
    created_at      = db.Column(db.DateTime, default=utcnow)
    updated_at      = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    bill_of_materials = db.relationship(
        'BomEntry',
        foreign_keys='BomEntry.parent_id',
        back_populates='parent',
        cascade='all, delete-orphan',
        lazy=True,
    )

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'unitType': self.unit_type,
            'unitLabel': self.unit_label,
            'price': float(self.price or 0),
            'materialCost': float(self.material_cost or 0),
            'laborHours': float(self.labor_hours or 0),
            'thresholdAmount': (float(self.threshold_amount)
                                if self.threshold_amount is not None else None),
            'billOfMaterials': [
                {'item': e.item_id, 'code': e.item.code, 'quantity': e.quantity}
                for e in self.bill_of_materials
            ],
            'isActive': self.is_active,
            'sortOrder': self.sort_order,
        }


class BomEntry(db.Model):
    __tablename__ = 'bom_entry'
    __table_args__ = (
        db.UniqueConstraint('parent_id', 'item_id', name='uq_bom_parent_item'),
    )
    id        = db.Column(db.Integer, primary_key=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('cost_item.id'), nullable=False)
    item_id   = db.Column(db.Integer, db.ForeignKey('cost_item.id'), nullable=False)
    quantity  = db.Column(db.Integer, nullable=False, default=1)

    parent = db.relationship('CostItem', foreign_keys=[parent_id],
                             back_populates='bill_of_materials')
    item   = db.relationship('CostItem', foreign_keys=[item_id])


class Setting(db.Model):
    """Global settings singleton, looked up by ``key='global'``."""
    __tablename__ = 'setting'
    id         = db.Column(db.Integer, primary_key=True)
    key        = db.Column(db.String(32), unique=True, nullable=False, default='global')
    labor_rate = db.Column(db.Numeric(10, 2), nullable=False, default=50)
    updated_by = db.Column(db.String(50))
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @classmethod
    def get_settings(cls):
        """Find-or-create the singleton row."""
        settings = cls.query.filter_by(key='global').first()
        if settings is None:
            settings = cls(key='global', labor_rate=50)
            db.session.add(settings)
            db.session.commit()
        return settings


class Quote(db.Model):
    __tablename__ = 'quote'
    id               = db.Column(db.Integer, primary_key=True)
    quote_number     = db.Column(db.String(8), unique=True, nullable=False)
    customer_name    = db.Column(db.String(100), nullable=False)
    customer_email   = db.Column(db.String(254), nullable=False, index=True)
    customer_phone   = db.Column(db.String(20))
    service_type     = db.Column(db.String(16), nullable=False)
    discount         = db.Column(db.Integer, nullable=False, default=0)

    coax_runs        = db.Column(db.Integer, nullable=False, default=0)
    cat6_runs        = db.Column(db.Integer, nullable=False, default=0)
    fiber_runs       = db.Column(db.Integer, nullable=False, default=0)
    ap_mounts        = db.Column(db.Integer, nullable=False, default=0)
    eth_relocations  = db.Column(db.Integer, nullable=False, default=0)
    centralization   = db.Column(db.String(32))
    has_existing_panel = db.Column(db.Boolean, nullable=False, default=False)

    total_cost       = db.Column(db.Numeric(10, 2))
    deposit_required = db.Column(db.Numeric(10, 2))
    deposit_amount   = db.Column(db.Numeric(10, 2))
    estimated_minutes = db.Column(db.Integer)

    whole_home       = db.Column(db.JSON)
    home_info        = db.Column(db.JSON)
    status           = db.Column(db.String(16), nullable=False, default='pending')
    ip               = db.Column(db.String(64))
    updated_by       = db.Column(db.String(50))
    created_at       = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at       = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    invoice = db.relationship('Invoice', back_populates='quote', uselist=False)

    @property
    def runs(self):
        return {'coax': self.coax_runs, 'cat6': self.cat6_runs, 'fiber': self.fiber_runs}

    @property
    def services(self):
        return {'apMount': self.ap_mounts, 'ethRelocation': self.eth_relocations}

    @property
    def pricing(self):
        if self.service_type == 'Whole-Home':
            return {'depositAmount': float(self.deposit_amount or 0)}
        return {
            'totalCost': float(self.total_cost or 0),
            'depositRequired': float(self.deposit_required or 0),
        }

    def to_dict(self):
        return {
            'id': self.id,
            'quoteNumber': self.quote_number,
            'customer': {
                'name': self.customer_name,
                'email': self.customer_email,
                'phone': self.customer_phone,
            },
            'serviceType': self.service_type,
            'discount': self.discount,
            'runs': self.runs,
            'services': self.services,
            'centralization': self.centralization,
            'hasExistingPanel': self.has_existing_panel,
            'pricing': self.pricing,
            'estimatedMinutes': self.estimated_minutes,
            'wholeHome': self.whole_home,
            'homeInfo': self.home_info,
            'status': self.status,
            'invoiceId': self.invoice.id if self.invoice else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class ConsultationRequest(db.Model):
    __tablename__ = 'consultation_request'
    id                 = db.Column(db.Integer, primary_key=True)
    request_number     = db.Column(db.String(8), unique=True, nullable=False)
    customer_name      = db.Column(db.String(100), nullable=False)
    customer_email     = db.Column(db.String(254), nullable=False, index=True)
    customer_phone     = db.Column(db.String(20))
    square_footage     = db.Column(db.String(16), nullable=False)
    isp                = db.Column(db.String(200))
    current_issues     = db.Column(db.JSON, nullable=False, default=list)
    interested_services = db.Column(db.JSON, nullable=False, default=list)
    interested_package = db.Column(db.String(16), nullable=False, default='unsure')
    status             = db.Column(db.String(24), nullable=False, default='new')
    admin_notes        = db.Column(db.String(2000))
    quoted_amount      = db.Column(db.Numeric(10, 2))
    scheduled_consultation = db.Column(db.DateTime)
    ip                 = db.Column(db.String(64))
    user_agent         = db.Column(db.String(200))
    updated_by         = db.Column(db.String(50))
    created_at         = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at         = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'requestNumber': self.request_number,
            'customer': {
                'name': self.customer_name,
                'email': self.customer_email,
                'phone': self.customer_phone,
            },
            'property': {
                'squareFootage': self.square_footage,
                'isp': self.isp,
                'currentIssues': self.current_issues or [],
            },
            'interestedServices': self.interested_services or [],
            'interestedPackage': self.interested_package,
            'status': self.status,
            'adminNotes': self.admin_notes,
            'quotedAmount': float(self.quoted_amount) if self.quoted_amount is not None else None,
            'scheduledConsultation': (self.scheduled_consultation.isoformat()
                                      if self.scheduled_consultation else None),
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class BookingDay(db.Model):
    """Per-date lock row; bumping ``version`` serialises bookings on a date."""
    __tablename__ = 'booking_day'
    date    = db.Column(db.Date, primary_key=True)
    version = db.Column(db.Integer, nullable=False, default=0)


class Schedule(db.Model):
    __tablename__ = 'schedule'
    __table_args__ = (
        db.Index(
            'uq_schedule_active_slot', 'date', 'time',
            unique=True,
            sqlite_where=db.text("status != 'cancelled'"),
            postgresql_where=db.text("status != 'cancelled'"),
        ),
    )
    id               = db.Column(db.Integer, primary_key=True)
    name             = db.Column(db.String(100), nullable=False)
    email            = db.Column(db.String(254), nullable=False, index=True)
    date             = db.Column(db.Date, nullable=False, index=True)
    time             = db.Column(db.String(5), nullable=False)
    appointment_type = db.Column(db.String(32), nullable=False)
    duration         = db.Column(db.Integer, nullable=False)
    status           = db.Column(db.String(16), nullable=False, default='pending')
    quote_id         = db.Column(db.Integer, db.ForeignKey('quote.id'))
    notes            = db.Column(db.String(500))
    ip               = db.Column(db.String(64))
    updated_by       = db.Column(db.String(50))
    created_at       = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at       = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    quote = db.relationship('Quote')

    def to_dict(self, public=False):
        data = {
            'id': self.id,
            'date': self.date.isoformat(),
            'time': self.time,
            'appointmentType': self.appointment_type,
            'duration': self.duration,
            'status': self.status,
        }
        if not public:
            data.update(
                name=self.name,
                email=self.email,
                quoteNumber=self.quote.quote_number if self.quote else None,
                notes=self.notes,
            )
        return data


class Invoice(db.Model):
    __tablename__ = 'invoice'
    id                  = db.Column(db.Integer, primary_key=True)
    invoice_number      = db.Column(db.String(16), unique=True, nullable=False)
    quote_id            = db.Column(db.Integer, db.ForeignKey('quote.id'), unique=True)
    customer_name       = db.Column(db.String(100), nullable=False)
    customer_email      = db.Column(db.String(254), nullable=False)
    service_description = db.Column(db.String(500), nullable=False)
    amount              = db.Column(db.Numeric(10, 2), nullable=False)
    discount            = db.Column(db.Integer, nullable=False, default=0)
    final_amount        = db.Column(db.Numeric(10, 2), nullable=False)
    status              = db.Column(db.String(16), nullable=False, default='Draft')
    issue_date          = db.Column(db.Date)
    due_date            = db.Column(db.Date)
    paid_date           = db.Column(db.Date)
    created_at          = db.Column(db.DateTime, default=utcnow)
    updated_at          = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    quote = db.relationship('Quote', back_populates='invoice')

    def to_dict(self):
        return {
            'id': self.id,
            'invoiceNumber': self.invoice_number,
            'quoteId': self.quote_id,
            'customer': {'name': self.customer_name, 'email': self.customer_email},
            'serviceDescription': self.service_description,
            'amount': float(self.amount),
            'discount': self.discount,
            'finalAmount': float(self.final_amount),
            'status': self.status,
            'issueDate': self.issue_date.isoformat() if self.issue_date else None,
            'dueDate': self.due_date.isoformat() if self.due_date else None,
            'paidDate': self.paid_date.isoformat() if self.paid_date else None,
        }


class Admin(db.Model):
    __tablename__ = 'admin'
    MAX_LOGIN_ATTEMPTS = 5
    LOCK_MINUTES = 30

    id             = db.Column(db.Integer, primary_key=True)
    username       = db.Column(db.String(50), unique=True, nullable=False)
    password_hash  = db.Column(db.String(255), nullable=False)
    role           = db.Column(db.String(16), nullable=False, default='admin')
    is_active      = db.Column(db.Boolean, nullable=False, default=True)
    login_attempts = db.Column(db.Integer, nullable=False, default=0)
    lock_until     = db.Column(db.DateTime)
    last_login     = db.Column(db.DateTime)
    last_login_ip  = db.Column(db.String(64))
    created_at     = db.Column(db.DateTime, default=utcnow)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not password or not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_locked(self) -> bool:
        return bool(self.lock_until and self.lock_until > utcnow())
