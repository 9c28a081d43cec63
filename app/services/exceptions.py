"""
Exceptions raised by the pricing engine and the participation workflow.
"""


class PricingError(Exception):
    """Base class for pricing engine errors."""


class OfferNotFound(PricingError):
    """Raised when the referenced offer does not exist at transaction time."""

    def __init__(self, offer_id):
        self.offer_id = offer_id
        super().__init__(f"Offre introuvable : {offer_id}")


class ParticipationNotFound(PricingError):
    """Raised when the referenced participation does not exist."""

    def __init__(self, participation_id):
        self.participation_id = participation_id
        super().__init__(f"Participation introuvable : {participation_id}")


class TransientConflict(PricingError):
    """Raised when a concurrent write kept the offer transaction from committing."""

    def __init__(self, offer_id, attempts):
        self.offer_id = offer_id
        self.attempts = attempts
        super().__init__(
            f"Conflit d'écriture sur l'offre {offer_id} après {attempts} tentative(s)"
        )


class InvalidTierConfiguration(PricingError):
    """Raised at authoring time when tiers break the monotonicity or price rules."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("Configuration des paliers invalide : " + "; ".join(self.errors))


class InvalidStatusTransition(PricingError):
    """Raised when a participation cannot move to the requested status."""

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Transition de statut impossible : {current.value} -> {requested.value}"
        )
