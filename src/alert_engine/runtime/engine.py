from __future__ import annotations

from dataclasses import dataclass

from alert_engine.classify.classifier import AlertClassifier
from alert_engine.contracts.alert import Alert
from alert_engine.tracking.high_water import HighWaterMarkTracker
from alert_engine.tracking.state import InstrumentRegistry, InstrumentState
from alert_engine.tracking.volume import RollingVolumeTracker
from alert_engine.utils.config import DetectionConfig
from ingestion.contracts.tick import TradeTick


@dataclass
class EngineStats:
    ticks: int = 0
    alerts: int = 0


class AlertEngine:
    """
    Per-tick alert pipeline:
        tick -> volume tracker + high-water tracker -> classifier -> Alert | None

    `process` is synchronous and never yields, so each tick's state update is
    atomic with respect to other ticks on the event loop.
    """

    def __init__(
        self,
        *,
        registry: InstrumentRegistry,
        volume: RollingVolumeTracker,
        high_water: HighWaterMarkTracker,
        classifier: AlertClassifier,
    ):
        self.registry = registry
        self.volume = volume
        self.high_water = high_water
        self.classifier = classifier
        self.stats = EngineStats()

    @classmethod
    def from_config(cls, cfg: DetectionConfig | None = None) -> "AlertEngine":
        cfg = cfg or DetectionConfig()
        registry = InstrumentRegistry(window_size=cfg.window_size)
        return cls(
            registry=registry,
            volume=RollingVolumeTracker(registry, warmup=cfg.warmup_samples),
            high_water=HighWaterMarkTracker(registry),
            classifier=AlertClassifier(volume_threshold=cfg.volume_threshold),
        )

    def process(self, tick: TradeTick) -> Alert | None:
        self.stats.ticks += 1
        baseline = self.volume.observe(tick.symbol, tick.notional)
        high = self.high_water.observe(tick.symbol, tick.price)
        alert = self.classifier.classify(tick, baseline, high)
        if alert is not None:
            self.stats.alerts += 1
        return alert

    def state(self, symbol: str) -> InstrumentState | None:
        return self.registry.get(symbol)
