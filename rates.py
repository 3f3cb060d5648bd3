import logging

from draws import draw_key
from errors import ValidationError
from models import RateTable

logger = logging.getLogger(__name__)

PER_AGENT = "per-agent"
CASCADE = "cascade"
MODES = (PER_AGENT, CASCADE)
DEFAULT_RATE = 10


def rate_for(rate_map, bet_type, default=DEFAULT_RATE):
    value = rate_map.get(getattr(bet_type, "value", bet_type))
    return default if value is None else value


class RateResolver:
    """Commission rates per (agent, draw, bet type).

    ``per-agent`` returns each agent's own row; ``cascade`` reads only the
    reference agent's row and hands the same map to every agent asked for.
    Agents without a row get an empty map and the caller falls back to
    :data:`DEFAULT_RATE`.
    """

    def resolve(self, agents, draw_label, mode=PER_AGENT, reference_agent=None):
        agents = list(dict.fromkeys(agents))
        key = draw_key(draw_label)

        if mode == CASCADE:
            if not reference_agent:
                raise ValidationError("cascade mode needs a reference agent")
            row = RateTable.query.filter_by(agent=reference_agent, draw_label=key).first()
            rates = dict(row.rates or {}) if row else {}
            logger.debug("cascading %s rates of %s to %d agents", key, reference_agent, len(agents))
            return {agent: dict(rates) for agent in agents}

        if mode != PER_AGENT:
            raise ValidationError(f"Unknown rate mode: {mode!r}")
        if not agents:
            return {}
        rows = (RateTable.query
                .filter(RateTable.agent.in_(agents), RateTable.draw_label == key)
                .all())
        found = {row.agent: dict(row.rates or {}) for row in rows}
        return {agent: found.get(agent, {}) for agent in agents}

    def resolve_draws(self, agents, draw_labels, mode=PER_AGENT, reference_agent=None):
        """Same as :meth:`resolve` for several draws at once, keyed by canonical draw."""
        return {
            draw_key(label): self.resolve(agents, label, mode, reference_agent)
            for label in dict.fromkeys(draw_labels)
        }
