# Copyright (c) 2025.
# This file is part of IK-JIT, released under the MIT License.
"""
JIT-compiled value / derivative builders for IK-JIT.

Costs and constraints are written as pure JAX functions of the
configuration ``q``. This module turns such a function into the compiled
callables the NLP components need:

    • the plain value ``f(q)``
    • the value together with its exact derivative, from a single
      differentiation pass

Differentiation modes
---------------------
"forward"
    Dual-number style. ``jax.linearize`` evaluates ``f`` once and returns
    its linear tangent map; pushing the identity basis through that map
    (``jax.vmap``) yields every column of the Jacobian, i.e. one dual seed
    per configuration entry. Cheapest for the small ``n_q`` of a robot arm.

"reverse"
    ``jax.vjp`` seeded with the output basis. Preferable when ``n_q`` is
    large relative to the number of outputs.

Both modes are exact; neither uses finite differences.

Design Goals
------------
• Trace once per solve: the wrappers are built when a component is
  constructed and reused for every solver callback.
• Keep the model static: the functions close over the robot model, so
  only ``q`` is a traced argument.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Tuple

import jax
import jax.numpy as jnp

AUTODIFF_MODES = ("forward", "reverse")


def check_autodiff_mode(mode: str) -> str:
    if mode not in AUTODIFF_MODES:
        raise ValueError(f"Unknown autodiff mode '{mode}', expected one of {AUTODIFF_MODES}")
    return mode


def value_and_jacfwd(fn: Callable[[jnp.ndarray], jnp.ndarray]) -> Callable:
    """
    Forward-mode value and Jacobian of ``fn`` in one pass.

    For a scalar ``fn`` the Jacobian is the gradient, shape ``(n,)``; for a
    vector-valued ``fn`` with ``m`` outputs it has shape ``(m, n)``.
    """
    def wrapped(q: jnp.ndarray):
        value, f_jvp = jax.linearize(fn, q)
        seeds = jnp.eye(q.shape[0], dtype=q.dtype)
        columns = jax.vmap(f_jvp)(seeds)     # (n, *out_shape)
        return value, jnp.moveaxis(columns, 0, -1)

    return wrapped


def value_and_jacrev(fn: Callable[[jnp.ndarray], jnp.ndarray]) -> Callable:
    """Reverse-mode counterpart of ``value_and_jacfwd``."""
    def wrapped(q: jnp.ndarray):
        value, f_vjp = jax.vjp(fn, q)
        seeds = jnp.eye(value.size, dtype=value.dtype).reshape((value.size,) + value.shape)
        (rows,) = jax.vmap(f_vjp)(seeds)     # (m, n)
        return value, rows.reshape(value.shape + q.shape)

    return wrapped


@dataclass
class JittedFunction:
    """
    Compiled value and value-and-derivative pair for a fixed function.

    Usage:
        jf = JittedFunction.from_function(lambda q: cost(q, ...), mode="forward")
        value = jf.value(q)
        value, grad = jf.value_and_derivative(q)
    """
    value: Callable[[jnp.ndarray], jnp.ndarray]
    value_and_derivative: Callable[[jnp.ndarray], Tuple[jnp.ndarray, jnp.ndarray]]
    mode: str

    @staticmethod
    def from_function(fn: Callable[[jnp.ndarray], jnp.ndarray], mode: str = "forward") -> "JittedFunction":
        check_autodiff_mode(mode)
        if mode == "forward":
            derivative = value_and_jacfwd(fn)
        else:
            derivative = value_and_jacrev(fn)
        return JittedFunction(
            value=jax.jit(fn),
            value_and_derivative=jax.jit(derivative),
            mode=mode,
        )
