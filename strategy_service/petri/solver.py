from __future__ import annotations

"""
Mass-action ODE integration for token-flow networks.

Each transition fires continuously at ``rate * prod(input masses)``; a
transition with any input at or below zero does not fire. Normal input arcs
drain ``flux * weight`` from their place, output arcs add ``flux * weight``
and read arcs leave their place untouched. The resulting system is solved
with the Tsitouras 5(4) Runge-Kutta scheme, on a fixed step by default.

Integrators keep per-instance bookkeeping (``calls``, ``last_stats``) that
is updated on every call, so one instance must not be driven from several
threads at once. ``SerialIntegrator`` puts an instance behind a single
worker thread and exposes it as an awaitable.
"""

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np

from ..config import SolverOptions
from ..errors import SolverError
from .net import ArcKind, PetriNet

logger = logging.getLogger(__name__)

__all__ = [
    "CompiledNet",
    "Integrator",
    "SerialIntegrator",
    "SolveStats",
    "Trajectory",
    "Tsit5Integrator",
    "compile_net",
]


# Tsit5 Butcher tableau (Tsitouras 2011).
_TSIT5_C = np.array([0.0, 0.161, 0.327, 0.9, 0.9800255409045097, 1.0, 1.0])
_TSIT5_A = (
    (),
    (0.161,),
    (-0.008480655492356924, 0.335480655492357),
    (2.8971530571054935, -6.359448489975075, 4.362295432869581),
    (5.325864828439257, -11.748883564062828, 7.4955393428898365, -0.09249506636175525),
    (5.86145544294642, -12.92096931784711, 8.159367898576159, -0.071584973281401,
     -0.028269050394068383),
    (0.09646076681806523, 0.01, 0.4798896504144996, 1.379008574103742,
     -3.290069515436081, 2.324710524099774),
)
_TSIT5_B = np.array([0.09646076681806523, 0.01, 0.4798896504144996, 1.379008574103742,
                     -3.290069515436081, 2.324710524099774, 0.0])
# Difference between the 5th-order weights and the embedded 4th-order ones.
_TSIT5_BHAT = np.array([-0.001780011052226, -0.000816434459657, 0.007880878010262,
                        -0.144711007173263, 0.582357165452555, -0.458082105929187,
                        1.0 / 66.0])
_TSIT5_ORDER = 5


@dataclass
class Trajectory:
    """Time series of markings; row i of ``states`` is the marking at ``times[i]``."""

    times: np.ndarray
    states: np.ndarray
    labels: Tuple[str, ...]

    def __len__(self) -> int:
        return int(self.times.shape[0])

    def _index(self, label: str) -> int:
        try:
            return self.labels.index(label)
        except ValueError:
            raise KeyError(label) from None

    def variable(self, label: str) -> np.ndarray:
        return self.states[:, self._index(label)]

    def final_state(self) -> Dict[str, float]:
        if len(self) == 0:
            return {}
        last = self.states[-1]
        return {label: float(last[i]) for i, label in enumerate(self.labels)}


@dataclass
class CompiledNet:
    """Dense matrices for the mass-action right-hand side."""

    labels: Tuple[str, ...]
    u0: np.ndarray
    rates: np.ndarray
    input_mask: np.ndarray  # places x transitions, normal or read inputs
    stoichiometry: np.ndarray  # places x transitions, produced - consumed

    def derivative(self, u: np.ndarray) -> np.ndarray:
        if self.rates.size == 0:
            return np.zeros_like(u)
        column = u[:, None]
        factors = np.where(self.input_mask, column, 1.0)
        flux = self.rates * np.prod(factors, axis=0)
        blocked = np.any(self.input_mask & (column <= 0.0), axis=0)
        flux = np.where(blocked, 0.0, flux)
        return self.stoichiometry @ flux


def compile_net(net: PetriNet) -> CompiledNet:
    labels = tuple(net.places)
    place_index = {label: i for i, label in enumerate(labels)}
    transitions = tuple(net.transitions)
    trans_index = {label: j for j, label in enumerate(transitions)}

    input_mask = np.zeros((len(labels), len(transitions)), dtype=bool)
    consumed = np.zeros((len(labels), len(transitions)))
    produced = np.zeros((len(labels), len(transitions)))

    for arc in net.arcs:
        if arc.source in place_index:
            i, j = place_index[arc.source], trans_index[arc.target]
            input_mask[i, j] = True
            if arc.kind == ArcKind.NORMAL:
                consumed[i, j] += arc.weight
        else:
            i, j = place_index[arc.target], trans_index[arc.source]
            produced[i, j] += arc.weight

    return CompiledNet(
        labels=labels,
        u0=np.array([net.places[p].initial for p in labels], dtype=float),
        rates=np.array([net.transitions[t].rate for t in transitions], dtype=float),
        input_mask=input_mask,
        stoichiometry=produced - consumed,
    )


@dataclass
class SolveStats:
    accepted: int = 0
    rejected: int = 0
    final_time: float = 0.0


class Integrator(ABC):
    """Integrates a net's relaxed dynamics over ``[0, horizon]``."""

    @abstractmethod
    def integrate(
        self,
        net: PetriNet,
        horizon: float,
        step_size: float,
        options: Optional[SolverOptions] = None,
    ) -> Optional[Trajectory]:
        ...


@dataclass
class Tsit5Integrator(Integrator):
    """Tsit5 Runge-Kutta over the mass-action ODE of a PetriNet.

    Deterministic for identical inputs. With ``adaptive=False`` (the default)
    it takes fixed steps of ``step_size``, shortening only the last one to
    land on the horizon.
    """

    calls: int = 0
    last_stats: SolveStats = field(default_factory=SolveStats)

    def integrate(
        self,
        net: PetriNet,
        horizon: float,
        step_size: float,
        options: Optional[SolverOptions] = None,
    ) -> Trajectory:
        opts = options or SolverOptions()
        self.calls += 1
        self.last_stats = SolveStats()

        if horizon <= 0 or step_size <= 0:
            raise SolverError(
                "Horizon and step size must be positive",
                net_name=net.name,
                context={"horizon": horizon, "step_size": step_size},
            )

        compiled = compile_net(net)
        f = compiled.derivative
        t_end = float(horizon)
        # Guards against a trailing sliver step from accumulated rounding.
        t_eps = 1e-12 * max(1.0, abs(t_end))

        t = 0.0
        u = compiled.u0.copy()
        dt = float(step_size)
        if opts.adaptive:
            dt = min(dt, opts.dtmax)
        times = [t]
        states = [u.copy()]
        stages = len(_TSIT5_C)

        while t_end - t > t_eps and self.last_stats.accepted < opts.maxiters:
            if t + dt > t_end:
                dt = t_end - t

            k = np.empty((stages, u.shape[0]))
            k[0] = f(u)
            for s in range(1, stages):
                k[s] = f(u + dt * np.dot(_TSIT5_A[s], k[:s]))

            u_next = u + dt * (_TSIT5_B @ k)

            err = 0.0
            if opts.adaptive:
                err_est = dt * (_TSIT5_BHAT @ k)
                scale = opts.abstol + opts.reltol * np.maximum(np.abs(u), np.abs(u_next))
                err = float(np.max(np.abs(err_est) / scale)) if u.size else 0.0

            if not np.all(np.isfinite(u_next)):
                raise SolverError(
                    "Integration diverged",
                    net_name=net.name,
                    context={"t": t, "dt": dt},
                )

            if not opts.adaptive or err <= 1.0 or dt <= opts.dtmin:
                t += dt
                u = u_next
                times.append(t)
                states.append(u.copy())
                self.last_stats.accepted += 1
                if opts.adaptive and err > 0:
                    factor = 0.9 * (1.0 / err) ** (1.0 / (_TSIT5_ORDER + 1))
                    dt = min(opts.dtmax, max(opts.dtmin, dt * min(factor, 5.0)))
            else:
                self.last_stats.rejected += 1
                factor = 0.9 * (1.0 / err) ** (1.0 / (_TSIT5_ORDER + 1))
                dt = max(opts.dtmin, dt * max(factor, 0.1))

        self.last_stats.final_time = t
        if t_end - t > t_eps:
            raise SolverError(
                "Integration stopped before horizon",
                net_name=net.name,
                context={"t": t, "horizon": t_end, "accepted": self.last_stats.accepted},
            )
        return Trajectory(
            times=np.array(times),
            states=np.vstack(states),
            labels=compiled.labels,
        )


class SerialIntegrator:
    """Awaitable front for an integrator that must see one call at a time.

    Every call is queued on a single worker thread, so calls run strictly in
    submission order and never overlap, whatever the caller's concurrency.
    """

    def __init__(self, integrator: Integrator) -> None:
        self._integrator = integrator
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ode-integrator")
        self._closed = False

    @property
    def integrator(self) -> Integrator:
        return self._integrator

    @property
    def closed(self) -> bool:
        return self._closed

    async def integrate(
        self,
        net: PetriNet,
        horizon: float,
        step_size: float,
        options: Optional[SolverOptions] = None,
    ) -> Optional[Trajectory]:
        loop = asyncio.get_running_loop()
        call = functools.partial(self._integrator.integrate, net, horizon, step_size, options)
        return await loop.run_in_executor(self._executor, call)

    def shutdown(self) -> None:
        self._closed = True
        self._executor.shutdown(wait=False)
