# =============================================================================
# Achatons - CLI Command Tests
# =============================================================================

from datetime import datetime, timedelta, timezone

from app.extensions import db
from app.models.offer import Offer
from app.models.pricing import PricingModel


def reload(offer_id):
    db.session.expire_all()
    return db.session.get(Offer, offer_id)


def legacy_offer(counter, pricing_model=PricingModel.TIERED):
    """Offer row written before quantities were tracked."""
    offer = Offer(
        name=f'Legacy {counter}',
        base_price=10000,
        deadline=datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=5),
        pricing_model=pricing_model,
        pricing_tiers=[{'tier_number': 1, 'min_participants': 10, 'price': 9000}]
        if pricing_model == PricingModel.TIERED else [],
        current_participants=counter,
        total_quantity=None,
    )
    db.session.add(offer)
    db.session.commit()
    return offer


class TestRecomputeOffersCommand:
    """Tests for `flask recompute-offers`."""

    def test_recompute_all(self, runner, tiered_offer, fixed_offer, make_participation):
        make_participation(tiered_offer, quantity=12)
        make_participation(fixed_offer, quantity=2)

        result = runner.invoke(args=['recompute-offers'])

        assert result.exit_code == 0
        assert '2 recalculée(s)' in result.output
        assert '1 palier(s) débloqué(s)' in result.output
        assert reload(tiered_offer.id).current_tier == 1
        assert reload(fixed_offer.id).total_quantity == 2

    def test_recompute_single(self, runner, tiered_offer, fixed_offer, make_participation):
        make_participation(tiered_offer, quantity=3)

        result = runner.invoke(args=['recompute-offers', '--offer-id', str(tiered_offer.id)])

        assert result.exit_code == 0
        assert '1 recalculée(s)' in result.output
        assert reload(tiered_offer.id).total_quantity == 3

    def test_recompute_unknown_offer(self, runner, app):
        result = runner.invoke(args=['recompute-offers', '--offer-id', '999'])
        assert result.exit_code == 0
        assert '[ERROR] Offre 999' in result.output
        assert '1 erreur(s)' in result.output

    def test_nothing_to_recompute(self, runner, app):
        result = runner.invoke(args=['recompute-offers'])
        assert 'Aucune offre' in result.output


class TestMigrateLegacyOffersCommand:
    """Tests for `flask migrate-legacy-offers`."""

    def test_large_counter_is_one_participant(self, runner, app):
        """A tiered counter above 10 was one order of that many units."""
        offer = legacy_offer(25)

        result = runner.invoke(args=['migrate-legacy-offers'])

        assert result.exit_code == 0
        migrated = reload(offer.id)
        assert migrated.current_participants == 1
        assert migrated.total_quantity == 25

    def test_small_counter_is_ambiguous(self, runner, app):
        """Small tiered counters become N participants of one unit each."""
        offer = legacy_offer(4)

        result = runner.invoke(args=['migrate-legacy-offers'])

        assert '[WARN]' in result.output
        migrated = reload(offer.id)
        assert migrated.current_participants == 4
        assert migrated.total_quantity == 4

    def test_fixed_offer(self, runner, app):
        offer = legacy_offer(7, pricing_model=PricingModel.FIXED)
        runner.invoke(args=['migrate-legacy-offers'])
        migrated = reload(offer.id)
        assert migrated.current_participants == 7
        assert migrated.total_quantity == 7

    def test_already_migrated_skipped(self, runner, tiered_offer):
        result = runner.invoke(args=['migrate-legacy-offers'])
        assert '[SKIP]' in result.output
        assert '0 offre(s) migrée(s), 1 déjà à jour' in result.output

    def test_dry_run_writes_nothing(self, runner, app):
        offer = legacy_offer(30)

        result = runner.invoke(args=['migrate-legacy-offers', '--dry-run'])

        assert '[DRY RUN]' in result.output
        unchanged = reload(offer.id)
        assert unchanged.current_participants == 30
        assert unchanged.total_quantity is None


class TestSeedDemoCommand:
    """Tests for `flask seed-demo`."""

    def test_creates_two_offers(self, runner, app):
        result = runner.invoke(args=['seed-demo'])
        assert result.exit_code == 0
        assert Offer.query.count() == 2
        tiered = Offer.query.filter_by(pricing_model=PricingModel.TIERED).one()
        assert [t.label for t in tiered.tiers] == ['Bronze', 'Silver', 'Gold']
