class BaseService:
    """Shared wiring for services owned by a BillingEngine."""

    def __init__(self, engine):
        self.engine = engine

    @property
    def clock(self):
        return self.engine.clock

    @property
    def config(self):
        return self.engine.config

    @property
    def repository(self):
        return self.engine.repository

    def today(self):
        return self.engine.clock.today()

    def now(self):
        return self.engine.clock.now()
