import numpy as np

IDLE = "idle"
FORWARD = "forward"
BACKPROP = "backprop"
PHASES = (IDLE, FORWARD, BACKPROP)

FORWARD_MS = 1000
BACKPROP_MS = 1000
PARTICLE_BATCH = 30
PARTICLE_DURATION_MS = (400, 800)

PHASE_DESCRIPTIONS = {
    FORWARD: "Calculating activations: Input data is flowing through weights and activation functions...",
    BACKPROP: "Learning from error: Gradients are flowing backwards to update the model's weights...",
    IDLE: "Currently Idle",
}


def phase_description(phase):
    return PHASE_DESCRIPTIONS.get(phase, PHASE_DESCRIPTIONS[IDLE])


def ease_cubic_in_out(t):
    t = np.clip(np.asarray(t, dtype=float), 0.0, 1.0) * 2.0
    return np.where(t <= 1.0, t**3, (t - 2.0) ** 3 + 2.0) / 2.0


class PhaseDriver:
    """Timed idle -> forward -> backprop -> idle cycle with particle batches.

    Time only moves through the ``now_ms`` arguments, so the same instance can
    be driven by interval ticks or by a test clock. ``links`` and ``positions``
    are read, never mutated.
    """

    def __init__(
        self,
        forward_ms=FORWARD_MS,
        backprop_ms=BACKPROP_MS,
        batch_size=PARTICLE_BATCH,
        duration_range=PARTICLE_DURATION_MS,
        rng=None,
    ):
        self.forward_ms = float(forward_ms)
        self.backprop_ms = float(backprop_ms)
        self.batch_size = int(batch_size)
        self.duration_range = (float(duration_range[0]), float(duration_range[1]))
        self.rng = rng if rng is not None else np.random.default_rng()
        self.phase = IDLE
        self.phase_started_ms = None
        self.generation = None
        self.particles = []

    @property
    def is_idle(self):
        return self.phase == IDLE

    @property
    def is_forwarding(self):
        return self.phase == FORWARD

    @property
    def is_backpropping(self):
        return self.phase == BACKPROP

    def run(self, links, positions, now_ms):
        if self.phase != IDLE:
            return False
        self._enter(FORWARD, links, positions, now_ms)
        return True

    def advance(self, links, positions, now_ms):
        while True:
            if self.phase == FORWARD and now_ms >= self.phase_started_ms + self.forward_ms:
                self._enter(BACKPROP, links, positions, self.phase_started_ms + self.forward_ms)
            elif self.phase == BACKPROP and now_ms >= self.phase_started_ms + self.backprop_ms:
                self.phase = IDLE
                self.phase_started_ms = None
                self.particles = []
            else:
                break
        self.prune(now_ms)
        return self.phase

    def rebind(self, generation):
        if generation != self.generation:
            self.generation = generation
            self.particles = []

    def prune(self, now_ms):
        self.particles = [
            p for p in self.particles if now_ms < p["spawn_ms"] + p["duration_ms"]
        ]

    def has_activity(self):
        return self.phase != IDLE or bool(self.particles)

    def _enter(self, phase, links, positions, started_ms):
        self.phase = phase
        self.phase_started_ms = float(started_ms)
        direction = "forward" if phase == FORWARD else "backward"
        self.particles = self.spawn_batch(links, positions, direction, started_ms)

    def spawn_batch(self, links, positions, direction, spawn_ms):
        if not links:
            return []
        batch = []
        picks = self.rng.integers(0, len(links), size=self.batch_size)
        durations = self.rng.uniform(*self.duration_range, size=self.batch_size)
        for pick, duration in zip(picks, durations):
            link = links[int(pick)]
            source = positions.get(link.get("source"))
            target = positions.get(link.get("target"))
            if source is None or target is None:
                continue
            start, end = (source, target) if direction == "forward" else (target, source)
            batch.append(
                {
                    "link_id": link.get("id"),
                    "start": [float(start[0]), float(start[1])],
                    "end": [float(end[0]), float(end[1])],
                    "direction": direction,
                    "duration_ms": float(duration),
                    "spawn_ms": float(spawn_ms),
                }
            )
        return batch

    def particle_frame(self, now_ms):
        frame = {"forward": ([], []), "backward": ([], [])}
        for particle in self.particles:
            elapsed = now_ms - particle["spawn_ms"]
            if elapsed < 0 or elapsed >= particle["duration_ms"]:
                continue
            t = float(ease_cubic_in_out(elapsed / particle["duration_ms"]))
            xs, ys = frame[particle["direction"]]
            xs.append(particle["start"][0] + (particle["end"][0] - particle["start"][0]) * t)
            ys.append(particle["start"][1] + (particle["end"][1] - particle["start"][1]) * t)
        return frame

    def to_dict(self):
        return {
            "phase": self.phase,
            "phase_started_ms": self.phase_started_ms,
            "generation": self.generation,
            "particles": list(self.particles),
        }

    @classmethod
    def from_dict(cls, data, rng=None, **kwargs):
        driver = cls(rng=rng, **kwargs)
        data = data or {}
        phase = data.get("phase", IDLE)
        driver.phase = phase if phase in PHASES else IDLE
        started = data.get("phase_started_ms")
        driver.phase_started_ms = None if driver.phase == IDLE or started is None else float(started)
        if driver.phase != IDLE and driver.phase_started_ms is None:
            driver.phase = IDLE
        driver.generation = data.get("generation")
        driver.particles = list(data.get("particles") or [])
        return driver
