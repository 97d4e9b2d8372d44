from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime, date
from decimal import Decimal

db = SQLAlchemy()

Money = db.Numeric(12, 2)


def _money(value):
    return float(value) if value is not None else 0.0


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(50), nullable=False) # 'admin', 'landlord', 'accounts'
    # Staff accounts work on behalf of one landlord
    landlord_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)

    settings = db.relationship('UserSettings', backref='user', uselist=False, lazy=True)

    @property
    def owner_id(self):
        """Id whose portfolio this user works on."""
        if self.role != 'landlord' and self.landlord_id:
            return self.landlord_id
        return self.id


class UserSettings(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, nullable=False)
    currency = db.Column(db.String(10), nullable=False)
    locale = db.Column(db.String(20), nullable=False)
    company_name = db.Column(db.String(100))
    residency_status = db.Column(db.String(20), default='resident') # resident, non-resident

    def to_dict(self):
        return {
            'currency': self.currency,
            'locale': self.locale,
            'company_name': self.company_name,
            'residency_status': self.residency_status,
        }


class AuditLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    action = db.Column(db.String(50), nullable=False) # e.g. 'DELETE', 'UPDATE', 'CREATE'
    target_type = db.Column(db.String(50)) # e.g. 'Tenancy', 'Payment'
    target_id = db.Column(db.Integer)
    details = db.Column(db.Text)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('audit_logs', lazy=True))

    def to_dict(self):
        return {
            'id': self.id,
            'user': self.user.username if self.user else None,
            'action': self.action,
            'target_type': self.target_type,
            'target_id': self.target_id,
            'details': self.details,
            'timestamp': _iso(self.timestamp),
        }


class Property(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    address_line_1 = db.Column(db.String(200), nullable=False)
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    postal_code = db.Column(db.String(20))

    property_type = db.Column(db.String(20), default='Domestic') # Domestic, Commercial
    building_type = db.Column(db.String(50)) # Flat, Bungalow, Office, ...
    bedrooms = db.Column(db.Integer, default=0)
    bathrooms = db.Column(db.Integer, default=0)

    purchase_price = db.Column(Money, default=Decimal('0.00'))
    current_value = db.Column(Money, default=Decimal('0.00'))
    rental_value = db.Column(Money, default=Decimal('0.00')) # Asking rent

    status = db.Column(db.String(20), default='vacant') # vacant, occupied, maintenance

    # Archive/Soft Delete
    archived = db.Column(db.Boolean, default=False)
    archived_date = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    tenancies = db.relationship('Tenancy', backref='property_obj', lazy=True)

    @property
    def display_name(self):
        parts = [self.address_line_1, self.city]
        return ', '.join(p for p in parts if p)

    def to_dict(self):
        return {
            'id': self.id,
            'address_line_1': self.address_line_1,
            'city': self.city,
            'state': self.state,
            'postal_code': self.postal_code,
            'display_name': self.display_name,
            'property_type': self.property_type,
            'building_type': self.building_type,
            'bedrooms': self.bedrooms,
            'bathrooms': self.bathrooms,
            'purchase_price': _money(self.purchase_price),
            'current_value': _money(self.current_value),
            'rental_value': _money(self.rental_value),
            'status': self.status,
            'archived': bool(self.archived),
        }


class Tenant(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100))
    phone = db.Column(db.String(30))
    id_type = db.Column(db.String(30)) # National ID, Passport, ...
    id_number = db.Column(db.String(50))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    tenancies = db.relationship('Tenancy', backref='tenant', lazy=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def has_active_tenancy(self):
        today = date.today()
        return any(t.status == 'Active' and t.end_date >= today for t in self.tenancies)

    def to_dict(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'id_type': self.id_type,
            'id_number': self.id_number,
            'notes': self.notes,
            'has_active_tenancy': self.has_active_tenancy,
        }


class Tenancy(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenant.id'), nullable=False)
    property_id = db.Column(db.Integer, db.ForeignKey('property.id'), nullable=False)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    rent_amount = db.Column(Money, nullable=False)
    deposit_amount = db.Column(Money, default=Decimal('0.00'))
    rent_due_day = db.Column(db.Integer, default=1)
    payment_frequency = db.Column(db.String(20), default='Monthly') # Monthly, Quarterly, Annually

    status = db.Column(db.String(20), default='Active') # Active, Ended
    ended_on = db.Column(db.Date)

    # Documents
    lease_agreement_url = db.Column(db.String(300))
    move_in_checklist_url = db.Column(db.String(300))
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    service_charges = db.relationship('TenancyServiceCharge', backref='tenancy', lazy=True, cascade="all, delete-orphan")
    obligations = db.relationship('RevenueObligation', backref='tenancy', lazy=True, cascade="all, delete-orphan",
                                  order_by='[RevenueObligation.due_date, RevenueObligation.id]')
    # Payments are owned by their obligation; this is a read-only view across all of them
    payments = db.relationship('Payment', lazy=True, viewonly=True, order_by='Payment.date_received')

    @property
    def service_charge_total(self):
        return sum((sc.amount for sc in self.service_charges), Decimal('0.00'))

    @property
    def days_to_expiry(self):
        delta = self.end_date - date.today()
        return delta.days

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'tenant_name': self.tenant.full_name if self.tenant else None,
            'property_id': self.property_id,
            'property_name': self.property_obj.display_name if self.property_obj else None,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'rent_amount': _money(self.rent_amount),
            'deposit_amount': _money(self.deposit_amount),
            'rent_due_day': self.rent_due_day,
            'payment_frequency': self.payment_frequency,
            'service_charges': [sc.to_dict() for sc in self.service_charges],
            'service_charge_total': _money(self.service_charge_total),
            'status': self.status,
            'ended_on': _iso(self.ended_on),
            'lease_agreement_url': self.lease_agreement_url,
            'move_in_checklist_url': self.move_in_checklist_url,
            'notes': self.notes,
        }


class TenancyServiceCharge(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    tenancy_id = db.Column(db.Integer, db.ForeignKey('tenancy.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False) # e.g. Water, Garbage, Security
    amount = db.Column(Money, nullable=False) # Monthly amount

    def to_dict(self):
        return {'name': self.name, 'amount': _money(self.amount)}


class RevenueObligation(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    tenancy_id = db.Column(db.Integer, db.ForeignKey('tenancy.id'), nullable=False)
    property_id = db.Column(db.Integer, db.ForeignKey('property.id'))
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenant.id'))

    kind = db.Column(db.String(20), nullable=False) # Rent, Deposit, Service Charge
    charge_name = db.Column(db.String(100)) # Service charge name, if any
    amount_due = db.Column(Money, nullable=False)
    amount_paid = db.Column(Money, default=Decimal('0.00'), nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    period_start = db.Column(db.Date)
    period_end = db.Column(db.Date)
    invoice_number = db.Column(db.String(100))
    notes = db.Column(db.String(200))
    status = db.Column(db.String(20), default='Unpaid') # Unpaid, Partial, Paid

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    payments = db.relationship('Payment', backref='obligation', lazy=True, cascade="all, delete-orphan")

    @property
    def balance(self):
        return (self.amount_due or Decimal('0.00')) - (self.amount_paid or Decimal('0.00'))

    def to_record(self):
        """Plain dict consumed by the arrears calculations."""
        return {
            'id': self.id,
            'tenancy_id': self.tenancy_id,
            'kind': self.kind,
            'charge_name': self.charge_name,
            'amount_due': self.amount_due,
            'amount_paid': self.amount_paid or Decimal('0.00'),
            'due_date': self.due_date,
            'notes': self.notes,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'tenancy_id': self.tenancy_id,
            'property_id': self.property_id,
            'tenant_id': self.tenant_id,
            'kind': self.kind,
            'charge_name': self.charge_name,
            'amount_due': _money(self.amount_due),
            'amount_paid': _money(self.amount_paid),
            'balance': _money(self.balance),
            'due_date': _iso(self.due_date),
            'period_start': _iso(self.period_start),
            'period_end': _iso(self.period_end),
            'invoice_number': self.invoice_number,
            'notes': self.notes,
            'status': self.status,
        }


class Payment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    obligation_id = db.Column(db.Integer, db.ForeignKey('revenue_obligation.id'), nullable=False)
    tenancy_id = db.Column(db.Integer, db.ForeignKey('tenancy.id'), nullable=False)
    date_received = db.Column(db.Date, default=date.today)
    amount = db.Column(Money, nullable=False)
    method = db.Column(db.String(30), default='Other') # M-Pesa, Bank Transfer, Cash, Credit Card, Other
    reference = db.Column(db.String(100)) # e.g. Cheque No, Transfer Ref

    def to_dict(self):
        return {
            'id': self.id,
            'obligation_id': self.obligation_id,
            'tenancy_id': self.tenancy_id,
            'date_received': _iso(self.date_received),
            'amount': _money(self.amount),
            'method': self.method,
            'reference': self.reference,
        }


class Contractor(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    specialty = db.Column(db.String(100)) # Plumbing, Electrical, ...
    email = db.Column(db.String(100))
    phone = db.Column(db.String(30))
    notes = db.Column(db.Text)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'specialty': self.specialty,
            'email': self.email,
            'phone': self.phone,
            'notes': self.notes,
        }


class Expense(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    property_id = db.Column(db.Integer, db.ForeignKey('property.id'))
    contractor_id = db.Column(db.Integer, db.ForeignKey('contractor.id'))

    amount = db.Column(Money, nullable=False)
    date = db.Column(db.Date, nullable=False)
    category = db.Column(db.String(50), nullable=False) # Repairs, Utilities, Insurance, Taxes, ...
    vendor_name = db.Column(db.String(100))
    invoice_number = db.Column(db.String(100))
    expense_type = db.Column(db.String(20), default='one-off') # one-off, recurring
    frequency = db.Column(db.String(20)) # weekly, bi-weekly, monthly, quarterly, yearly
    notes = db.Column(db.Text)

    property_obj = db.relationship('Property', backref=db.backref('expenses', lazy=True))
    contractor = db.relationship('Contractor', backref=db.backref('expenses', lazy=True))

    def to_dict(self):
        return {
            'id': self.id,
            'property_id': self.property_id,
            'property_name': self.property_obj.display_name if self.property_obj else None,
            'contractor_id': self.contractor_id,
            'contractor_name': self.contractor.name if self.contractor else None,
            'amount': _money(self.amount),
            'date': _iso(self.date),
            'category': self.category,
            'vendor_name': self.vendor_name,
            'invoice_number': self.invoice_number,
            'expense_type': self.expense_type,
            'frequency': self.frequency,
            'notes': self.notes,
        }


class MaintenanceRequest(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    property_id = db.Column(db.Integer, db.ForeignKey('property.id'), nullable=False)
    contractor_id = db.Column(db.Integer, db.ForeignKey('contractor.id'))

    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), default='To Do') # To Do, In Progress, Done, Cancelled
    priority = db.Column(db.String(20), default='Medium') # Low, Medium, High, Emergency
    reported_date = db.Column(db.Date, default=date.today)
    completed_date = db.Column(db.Date)
    cost = db.Column(Money)

    property_obj = db.relationship('Property', backref=db.backref('maintenance_requests', lazy=True))
    contractor = db.relationship('Contractor', backref=db.backref('maintenance_requests', lazy=True))

    def to_dict(self):
        return {
            'id': self.id,
            'property_id': self.property_id,
            'property_name': self.property_obj.display_name if self.property_obj else None,
            'contractor_id': self.contractor_id,
            'contractor_name': self.contractor.name if self.contractor else None,
            'description': self.description,
            'status': self.status,
            'priority': self.priority,
            'reported_date': _iso(self.reported_date),
            'completed_date': _iso(self.completed_date),
            'cost': _money(self.cost) if self.cost is not None else None,
        }
