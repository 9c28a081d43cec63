"""
Marshmallow schemas for API serialization and request validation.
Converts SQLAlchemy models to JSON-safe dictionaries.
"""
from dataclasses import asdict

from marshmallow import Schema, fields, validate, pre_load, EXCLUDE

from app.models.pricing import PricingModel
from app.models.participation import ParticipationStatus
from app.services.pricing import price_summary
from app.services.presentation import format_fcfa, nudge_message, tier_progress


# ── Shared helpers ──────────────────────────────────────────

class BaseSchema(Schema):
    """Base schema with common config."""


class InputSchema(Schema):
    """Request bodies: unknown keys are dropped."""
    class Meta:
        unknown = EXCLUDE


def _enum_value(attr):
    def getter(obj):
        value = getattr(obj, attr)
        return value.value if value is not None else None
    return getter


# ── Offers ──────────────────────────────────────────────────

class TierSchema(BaseSchema):
    tier_number = fields.Int()
    min_participants = fields.Int()
    price = fields.Float()
    label = fields.Str()
    discount_percentage = fields.Float()


class MilestoneSchema(BaseSchema):
    tier_number = fields.Int()
    reached_at = fields.Str()
    participants_count = fields.Int()
    price_at_unlock = fields.Float()


class OfferMinimalSchema(BaseSchema):
    """Offer card on the storefront list."""
    id = fields.Int(dump_only=True)
    name = fields.Str()
    image_url = fields.Str()
    supplier = fields.Str()
    category_id = fields.Str()
    unit_of_measure = fields.Str()
    status = fields.Function(_enum_value('status'))
    pricing_model = fields.Function(_enum_value('pricing_model'))
    base_price = fields.Float()
    current_price = fields.Float()
    formatted_price = fields.Function(lambda obj: format_fcfa(obj.current_price))
    current_participants = fields.Int()
    total_quantity = fields.Int()
    current_tier = fields.Int()
    next_tier_quantity = fields.Int(allow_none=True)
    deadline = fields.DateTime(format='iso')


class OfferSchema(OfferMinimalSchema):
    """Full offer with pricing state and display values."""
    description = fields.Str()
    seller_id = fields.Str()
    start_date = fields.DateTime(format='iso', allow_none=True)
    group_price = fields.Float(allow_none=True)
    target_participants = fields.Int()
    pricing_tiers = fields.Method('get_tiers')
    total_revenue = fields.Float()
    tier_history = fields.Method('get_history')
    pricing = fields.Method('get_pricing')
    progress = fields.Method('get_progress')
    nudge = fields.Method('get_nudge')
    created_at = fields.DateTime(format='iso')
    updated_at = fields.DateTime(format='iso', allow_none=True)

    def get_tiers(self, obj):
        return TierSchema(many=True).dump(obj.tiers)

    def get_history(self, obj):
        return MilestoneSchema(many=True).dump(obj.milestones)

    def get_pricing(self, obj):
        if not obj.has_tiered_pricing:
            return None
        summary = price_summary(obj.total_quantity or 0, obj.tiers, obj.base_price)
        resolution = summary.resolution
        return {
            'current_tier': resolution.current_tier,
            'current_price': resolution.current_price,
            'next_tier': TierSchema().dump(resolution.next_tier) if resolution.next_tier else None,
            'quantity_to_next_tier': resolution.quantity_to_next_tier,
            'savings_from_base': summary.savings_from_base,
            'max_possible_savings': summary.max_possible_savings,
            'discount_percentage': summary.discount_percentage,
        }

    def get_progress(self, obj):
        if not obj.has_tiered_pricing:
            return None
        progress = tier_progress(obj.tiers, obj.total_quantity or 0, obj.current_tier or 0)
        return asdict(progress) if progress else None

    def get_nudge(self, obj):
        if not obj.has_tiered_pricing:
            return None
        summary = price_summary(obj.total_quantity or 0, obj.tiers, obj.base_price)
        nudge = nudge_message(
            obj.total_quantity or 0,
            obj.current_tier or 0,
            summary.resolution.next_tier,
            obj.current_price,
            obj.deadline,
        )
        return {'kind': nudge.kind, 'message': nudge.message}


class TierInputSchema(InputSchema):
    min_participants = fields.Int(required=True)
    price = fields.Float(required=True)
    label = fields.Str(allow_none=True)


class OfferCreateSchema(InputSchema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    description = fields.Str(allow_none=True)
    image_url = fields.Str(allow_none=True)
    supplier = fields.Str(allow_none=True)
    category_id = fields.Str(allow_none=True)
    seller_id = fields.Str(allow_none=True)
    unit_of_measure = fields.Str(allow_none=True)
    start_date = fields.DateTime(allow_none=True)
    deadline = fields.DateTime(required=True)
    base_price = fields.Float(required=True, validate=validate.Range(min=0, min_inclusive=False))
    pricing_model = fields.Str(
        load_default=PricingModel.FIXED.value,
        validate=validate.OneOf([m.value for m in PricingModel]),
    )
    group_price = fields.Float(allow_none=True)
    target_participants = fields.Int(load_default=0)
    tiers = fields.List(fields.Nested(TierInputSchema), load_default=list)


class PricingUpdateSchema(InputSchema):
    base_price = fields.Float(validate=validate.Range(min=0, min_inclusive=False))
    pricing_model = fields.Str(validate=validate.OneOf([m.value for m in PricingModel]))
    tiers = fields.List(fields.Nested(TierInputSchema))


# ── Participations ──────────────────────────────────────────

class ParticipationSchema(BaseSchema):
    id = fields.Int(dump_only=True)
    offer_id = fields.Int()
    user_id = fields.Str(allow_none=True)
    customer_name = fields.Str()
    customer_phone = fields.Str()
    customer_email = fields.Str(allow_none=True)
    customer_address = fields.Str(allow_none=True)
    quantity = fields.Int()
    status = fields.Function(_enum_value('status'))
    created_at = fields.DateTime(format='iso')
    validated_at = fields.DateTime(format='iso', allow_none=True)
    cancelled_at = fields.DateTime(format='iso', allow_none=True)


class ParticipationCreateSchema(InputSchema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=120))
    phone = fields.Str(required=True, validate=validate.Length(min=6, max=30))
    email = fields.Email(allow_none=True)
    address = fields.Str(allow_none=True)
    quantity = fields.Int(strict=True, load_default=1, validate=validate.Range(min=1))
    user_id = fields.Str(allow_none=True)

    @pre_load
    def blank_optional_fields(self, data, **kwargs):
        """Storefront forms post empty strings for untouched optional inputs."""
        if not isinstance(data, dict):
            return data
        return {
            key: None if key in ('email', 'address') and value == '' else value
            for key, value in data.items()
        }


PARTICIPATION_STATUSES = [s.value for s in ParticipationStatus]


class OfferUpdateResultSchema(BaseSchema):
    tier_unlocked = fields.Bool()
    new_tier_number = fields.Int()
    new_price = fields.Float(allow_none=True)


# ── Notifications ───────────────────────────────────────────

class NotificationSchema(BaseSchema):
    id = fields.Int(dump_only=True)
    offer_id = fields.Int(allow_none=True)
    type = fields.Str()
    category = fields.Str()
    title = fields.Str()
    message = fields.Str()
    link = fields.Str()
    is_read = fields.Bool()
    created_at = fields.DateTime(format='iso')
