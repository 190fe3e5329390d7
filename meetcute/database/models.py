from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from meetcute.utils.money import minor_to_major
from meetcute.utils.timezone import utcnow


Base = declarative_base()


class UserRole(Enum):
    USER = 'user'
    ADMIN = 'admin'


class TierLevel(Enum):
    BASIC = 'Basic'
    PREMIUM = 'Premium'
    ELITE = 'Elite'

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]

    @property
    def role_name(self) -> str:
        return self.value.lower()

    @classmethod
    def parse(cls, value: 'str | TierLevel') -> 'TierLevel':
        if isinstance(value, cls):
            return value
        normalized = (value or '').strip().lower()
        for tier in cls:
            if tier.value.lower() == normalized:
                return tier
        raise ValueError(f'Unknown tier level: {value!r}')

    @classmethod
    def rank_of(cls, value: 'str | TierLevel | None') -> int:
        """Rank of an optional tier requirement; no requirement ranks below Basic."""
        if value is None:
            return 0
        return cls.parse(value).rank


_TIER_RANKS = {
    TierLevel.BASIC: 1,
    TierLevel.PREMIUM: 2,
    TierLevel.ELITE: 3,
}


class SubscriptionStatus(Enum):
    PENDING_VERIFICATION = 'pending_verification'
    ACTIVE = 'active'
    CANCELLED = 'cancelled'


class SubscriptionTransactionStatus(Enum):
    PENDING = 'pending'
    COMPLETED = 'completed'
    DECLINED = 'declined'


class ItemCategory(Enum):
    SUBSCRIPTION = 'subscription'
    GIFT = 'gift'
    BOOST = 'boost'
    BALANCE_TOPUP = 'balance_topup'


class TransactionStatus(Enum):
    PENDING_PAYMENT = 'pending_payment'
    PENDING_VERIFICATION = 'pending_verification'
    COMPLETED = 'completed'
    DECLINED = 'declined'


class TransactionType(Enum):
    MANUAL_PAYMENT = 'manual_payment'
    SUBSCRIPTION_SITE_BALANCE = 'subscription_site_balance'
    GIFT_SITE_BALANCE = 'gift_site_balance'
    GIFT = 'gift'
    GIFT_REDEMPTION = 'gift_redemption'


class WithdrawalRequestStatus(Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    DECLINED = 'declined'
    PROCESSED = 'processed'


class ReconciliationIssueKind(Enum):
    MISSING_PENDING_SUBSCRIPTION = 'missing_pending_subscription'
    MISSING_GIFT_RECIPIENT = 'missing_gift_recipient'
    MISSING_GIFT_ITEM = 'missing_gift_item'
    MISSING_BOOST_PACKAGE = 'missing_boost_package'


class BoostSource(Enum):
    SUBSCRIPTION = 'subscription'
    PURCHASE = 'purchase'


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    display_name = Column(String(255), nullable=True)

    # Denormalized highest active tier; written only by recompute_user_role
    role = Column(String(50), nullable=False, default=UserRole.USER.value)

    is_active = Column(Boolean, nullable=False, default=True)
    is_suspended = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    balance_account = relationship(
        'BalanceAccount', back_populates='user', uselist=False, cascade='all, delete-orphan'
    )
    subscriptions = relationship('UserSubscription', back_populates='user', cascade='all, delete-orphan')
    transactions = relationship(
        'Transaction', back_populates='user', foreign_keys='Transaction.user_id', cascade='all, delete-orphan'
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class BalanceAccount(Base):
    __tablename__ = 'balance_accounts'
    __table_args__ = (CheckConstraint('balance_cents >= 0', name='ck_balance_accounts_non_negative'),)

    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    balance_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default='USD')

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship('User', back_populates='balance_account')

    @property
    def balance(self) -> float:
        return float(minor_to_major(self.balance_cents, self.currency))


class Country(Base):
    __tablename__ = 'countries'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(3), unique=True, nullable=False)

    payment_methods = relationship('CountryPaymentMethod', back_populates='country', cascade='all, delete-orphan')


class PaymentMethodType(Base):
    __tablename__ = 'payment_method_types'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False)
    description = Column(Text, nullable=True)


class CountryPaymentMethod(Base):
    """Which payment method types are offered in a country, and how to pay with them."""

    __tablename__ = 'country_payment_methods'
    __table_args__ = (UniqueConstraint('country_id', 'payment_method_type_id', name='uq_country_payment_method'),)

    id = Column(Integer, primary_key=True, index=True)
    country_id = Column(Integer, ForeignKey('countries.id', ondelete='CASCADE'), nullable=False)
    payment_method_type_id = Column(Integer, ForeignKey('payment_method_types.id', ondelete='CASCADE'), nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)

    # Shown to the user after initiation ("send the amount to ...")
    user_instructions = Column(Text, nullable=True)
    # Raw pay-to details: account numbers, wallet ids, etc.
    configuration_details = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    country = relationship('Country', back_populates='payment_methods')
    payment_method_type = relationship('PaymentMethodType')


class SubscriptionPackage(Base):
    __tablename__ = 'subscription_packages'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    price_cents = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default='USD')
    billing_interval = Column(String(20), nullable=False, default='monthly')
    tier_level = Column(String(20), nullable=False, default=TierLevel.BASIC.value)
    duration_months = Column(Integer, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def tier(self) -> TierLevel:
        return TierLevel.parse(self.tier_level)

    @property
    def price(self) -> float:
        return float(minor_to_major(self.price_cents, self.currency))


class SubscriptionFeature(Base):
    """Feature unlocked by every package of a tier."""

    __tablename__ = 'subscription_features'
    __table_args__ = (UniqueConstraint('tier_level', 'feature_key', name='uq_subscription_feature_tier_key'),)

    id = Column(Integer, primary_key=True, index=True)
    tier_level = Column(String(20), nullable=False, index=True)
    feature_key = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)


class UserSubscription(Base):
    __tablename__ = 'user_subscriptions'
    __table_args__ = (Index('ix_user_subscriptions_user_status', 'user_id', 'status'),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    package_id = Column(Integer, ForeignKey('subscription_packages.id'), nullable=False)

    status = Column(String(30), nullable=False, default=SubscriptionStatus.PENDING_VERIFICATION.value)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    auto_renew = Column(Boolean, nullable=False, default=True)

    # Holds the fulfilling transaction id once activated
    payment_method_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship('User', back_populates='subscriptions')
    package = relationship('SubscriptionPackage')

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value


class SubscriptionTransaction(Base):
    __tablename__ = 'subscription_transactions'

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    subscription_id = Column(Integer, ForeignKey('user_subscriptions.id', ondelete='CASCADE'), nullable=False)
    package_id = Column(Integer, ForeignKey('subscription_packages.id'), nullable=False)

    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default='USD')
    status = Column(String(20), nullable=False, default=SubscriptionTransactionStatus.PENDING.value)
    payment_method = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    subscription = relationship('UserSubscription')


class Transaction(Base):
    __tablename__ = 'transactions'
    __table_args__ = (Index('ix_transactions_status_created', 'status', 'created_at'),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    type = Column(String(50), nullable=False, default=TransactionType.MANUAL_PAYMENT.value)

    payment_country_id = Column(Integer, ForeignKey('countries.id'), nullable=True)
    payment_method_type_id = Column(Integer, ForeignKey('payment_method_types.id'), nullable=True)

    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default='USD')

    item_category = Column(String(30), nullable=True)
    payable_item_id = Column(Integer, nullable=True)
    # Category-specific purchase details, e.g. gift recipient and message
    item_metadata = Column(JSON, nullable=True)

    status = Column(String(30), nullable=False, default=TransactionStatus.PENDING_PAYMENT.value)
    user_provided_reference = Column(String(255), nullable=True)
    admin_notes = Column(Text, nullable=True)
    verified_by = Column(Integer, ForeignKey('users.id'), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship('User', foreign_keys=[user_id], back_populates='transactions')
    payment_country = relationship('Country')
    payment_method_type = relationship('PaymentMethodType')

    @property
    def amount(self) -> float:
        return float(minor_to_major(self.amount_cents, self.currency))

    @property
    def is_terminal(self) -> bool:
        return self.status in (TransactionStatus.COMPLETED.value, TransactionStatus.DECLINED.value)


class GiftItem(Base):
    __tablename__ = 'gift_items'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)

    price_cents = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default='USD')
    required_tier_level = Column(String(20), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def price(self) -> float:
        return float(minor_to_major(self.price_cents, self.currency))


class UserGift(Base):
    __tablename__ = 'user_gifts'

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    recipient_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    gift_item_id = Column(Integer, ForeignKey('gift_items.id'), nullable=False)
    transaction_id = Column(Integer, ForeignKey('transactions.id'), nullable=True)

    message = Column(Text, nullable=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    is_read = Column(Boolean, nullable=False, default=False)

    # Price paid at send time; redemption is impossible without it
    original_purchase_price_cents = Column(Integer, nullable=True)
    is_redeemed = Column(Boolean, nullable=False, default=False)
    redeemed_value_cents = Column(Integer, nullable=True)
    redeemed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    sender = relationship('User', foreign_keys=[sender_id])
    recipient = relationship('User', foreign_keys=[recipient_id])
    gift_item = relationship('GiftItem')


class WithdrawalRequest(Base):
    __tablename__ = 'withdrawal_requests'

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default='USD')
    status = Column(String(20), default=WithdrawalRequestStatus.PENDING.value, nullable=False)

    user_payment_details = Column(Text, nullable=False)

    processed_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    admin_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship('User', foreign_keys=[user_id])
    admin = relationship('User', foreign_keys=[processed_by])

    @property
    def amount(self) -> float:
        return float(minor_to_major(self.amount_cents, self.currency))


class ReconciliationIssue(Base):
    """Payment that committed without the fulfillment it paid for."""

    __tablename__ = 'reconciliation_issues'

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey('transactions.id', ondelete='CASCADE'), nullable=False, index=True)
    kind = Column(String(50), nullable=False)
    details = Column(JSON, nullable=True)

    is_resolved = Column(Boolean, nullable=False, default=False)
    resolved_by = Column(Integer, ForeignKey('users.id'), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    resolution_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    transaction = relationship('Transaction')


class BoostPackage(Base):
    __tablename__ = 'boost_packages'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price_cents = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default='USD')
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)


class ProfileBoost(Base):
    __tablename__ = 'profile_boosts'

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    boost_package_id = Column(Integer, ForeignKey('boost_packages.id'), nullable=True)
    transaction_id = Column(Integer, ForeignKey('transactions.id'), nullable=True)
    source = Column(String(20), nullable=False, default=BoostSource.SUBSCRIPTION.value)

    started_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    created_at = Column(DateTime, default=utcnow)

    def is_running(self, now: datetime) -> bool:
        return self.started_at <= now < self.expires_at
