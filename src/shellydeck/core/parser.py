"""Translate raw device status payloads into :class:`DeviceState` fields.

Two entry points:

* :func:`apply_full_status` resets the telemetry of a state and repopulates it
  from a complete status document (Gen2+ ``Shelly.GetStatus`` or Gen1
  ``/status``).
* :func:`apply_status_change` merges a partial component update into a state,
  touching only the fields present in the payload.
"""

from __future__ import annotations

from typing import Any

from shellydeck.models import (
    CoverState,
    DeviceState,
    LightState,
    SensorReading,
    SwitchState,
)


GEN1_MARKERS = ("relays", "meters", "emeters", "rollers", "lights", "tmp")

SENSOR_FIELDS: dict[str, tuple[str, str]] = {
    "temperature": ("tC", "°C"),
    "humidity": ("rh", "%"),
    "illuminance": ("lux", "lx"),
    "voltmeter": ("voltage", "V"),
}


def split_component(key: str) -> tuple[str, int | None]:
    kind, sep, index = key.partition(":")
    if not sep:
        return kind, None
    try:
        return kind, int(index)
    except ValueError:
        return kind, None


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _nested(payload: dict[str, Any], key: str, inner: str) -> float | None:
    value = payload.get(key)
    if isinstance(value, dict):
        return _number(value.get(inner))
    return None


def is_gen1_status(status: dict[str, Any]) -> bool:
    return any(marker in status for marker in GEN1_MARKERS)


def apply_full_status(state: DeviceState, status: dict[str, Any]) -> None:
    state.reset_telemetry()
    state.raw_status = dict(status)
    if is_gen1_status(status):
        _apply_gen1_status(state, status)
    else:
        for key, value in status.items():
            if isinstance(value, dict):
                _aggregate_component(state, key, value)


def _aggregate_component(state: DeviceState, key: str, payload: dict[str, Any]) -> None:
    kind, index = split_component(key)

    if kind == "switch" and index is not None:
        switch = SwitchState(id=index, on=bool(payload.get("output", False)))
        switch.source = str(payload.get("source", ""))
        switch.power = _number(payload.get("apower"))
        state.switches[index] = switch
        _accumulate_meter(state, payload, power_key="apower")
        temperature = _nested(payload, "temperature", "tC")
        if temperature is not None and state.temperature is None:
            state.temperature = temperature
    elif kind == "light" and index is not None:
        state.lights[index] = LightState(
            id=index,
            on=bool(payload.get("output", False)),
            brightness=_int_or_none(payload.get("brightness")),
        )
        _accumulate_meter(state, payload, power_key="apower")
    elif kind == "cover" and index is not None:
        state.covers[index] = CoverState(
            id=index,
            state=str(payload.get("state", "unknown")),
            position=_int_or_none(payload.get("current_pos")),
        )
        _accumulate_meter(state, payload, power_key="apower")
    elif kind in ("pm", "pm1"):
        _accumulate_meter(state, payload, power_key="apower")
    elif kind == "em":
        state.power += _number(payload.get("total_act_power")) or 0.0
        state.current += _number(payload.get("total_current")) or 0.0
        voltage = _number(payload.get("a_voltage"))
        if voltage and not state.voltage:
            state.voltage = voltage
    elif kind == "em1":
        _accumulate_meter(state, payload, power_key="act_power")
    elif kind == "devicepower" and index is not None:
        battery = _nested(payload, "battery", "percent")
        if battery is not None:
            state.sensors[key] = SensorReading(key=key, value=battery, unit="%")
    elif kind in SENSOR_FIELDS and index is not None:
        field_name, unit = SENSOR_FIELDS[kind]
        value = _number(payload.get(field_name))
        if value is not None:
            state.sensors[key] = SensorReading(key=key, value=value, unit=unit)
            if kind == "temperature" and state.temperature is None:
                state.temperature = value


def _accumulate_meter(state: DeviceState, payload: dict[str, Any], power_key: str) -> None:
    power = _number(payload.get(power_key))
    if power is not None:
        state.power += power
    voltage = _number(payload.get("voltage"))
    if voltage and not state.voltage:
        state.voltage = voltage
    current = _number(payload.get("current"))
    if current and not state.current:
        state.current = current
    energy = _nested(payload, "aenergy", "total")
    if energy is not None:
        state.total_energy += energy


def _int_or_none(value: Any) -> int | None:
    number = _number(value)
    return None if number is None else int(number)


def _apply_gen1_status(state: DeviceState, status: dict[str, Any]) -> None:
    for index, relay in enumerate(status.get("relays") or []):
        if isinstance(relay, dict):
            state.switches[index] = SwitchState(
                id=index,
                on=bool(relay.get("ison", False)),
                source=str(relay.get("source", "")),
            )

    for meter in status.get("meters") or []:
        if not isinstance(meter, dict):
            continue
        state.power += _number(meter.get("power")) or 0.0
        # Gen1 meters count watt-minutes.
        state.total_energy += (_number(meter.get("total")) or 0.0) / 60.0

    for emeter in status.get("emeters") or []:
        if not isinstance(emeter, dict):
            continue
        state.power += _number(emeter.get("power")) or 0.0
        state.current += _number(emeter.get("current")) or 0.0
        state.total_energy += _number(emeter.get("total")) or 0.0
        voltage = _number(emeter.get("voltage"))
        if voltage and not state.voltage:
            state.voltage = voltage

    for index, light in enumerate(status.get("lights") or []):
        if isinstance(light, dict):
            state.lights[index] = LightState(
                id=index,
                on=bool(light.get("ison", False)),
                brightness=_int_or_none(light.get("brightness")),
            )

    for index, roller in enumerate(status.get("rollers") or []):
        if isinstance(roller, dict):
            state.covers[index] = CoverState(
                id=index,
                state=str(roller.get("state", "unknown")),
                position=_int_or_none(roller.get("current_pos")),
            )
            state.power += _number(roller.get("power")) or 0.0

    temperature = _nested(status, "tmp", "tC")
    if temperature is None:
        temperature = _number(status.get("temperature"))
    if temperature is not None:
        state.temperature = temperature


def apply_status_change(state: DeviceState, component: str, payload: dict[str, Any]) -> None:
    if state.raw_status is None:
        state.raw_status = {}
    merged = dict(state.raw_status.get(component) or {})
    merged.update(payload)
    state.raw_status[component] = merged

    kind, index = split_component(component)

    if kind in ("switch", "pm", "pm1", "light", "cover"):
        _merge_meter(state, payload, power_key="apower")
    elif kind == "em1":
        _merge_meter(state, payload, power_key="act_power")
    elif kind == "em":
        if (power := _number(payload.get("total_act_power"))) is not None:
            state.power = power
        if (current := _number(payload.get("total_current"))) is not None:
            state.current = current
        if (voltage := _number(payload.get("a_voltage"))) is not None:
            state.voltage = voltage

    if index is None:
        return

    if kind == "switch":
        switch = state.switches.setdefault(index, SwitchState(id=index))
        if "output" in payload:
            switch.on = bool(payload["output"])
        if "source" in payload:
            switch.source = str(payload["source"])
        if (power := _number(payload.get("apower"))) is not None:
            switch.power = power
        if (temperature := _nested(payload, "temperature", "tC")) is not None:
            state.temperature = temperature
    elif kind == "light":
        light = state.lights.setdefault(index, LightState(id=index))
        if "output" in payload:
            light.on = bool(payload["output"])
        if "brightness" in payload:
            light.brightness = _int_or_none(payload["brightness"])
    elif kind == "cover":
        cover = state.covers.setdefault(index, CoverState(id=index))
        if "state" in payload:
            cover.state = str(payload["state"])
        if "current_pos" in payload:
            cover.position = _int_or_none(payload["current_pos"])
    elif kind in SENSOR_FIELDS:
        field_name, unit = SENSOR_FIELDS[kind]
        value = _number(payload.get(field_name))
        if value is not None:
            state.sensors[component] = SensorReading(key=component, value=value, unit=unit)
            if kind == "temperature":
                state.temperature = value


def _merge_meter(state: DeviceState, payload: dict[str, Any], power_key: str) -> None:
    if (power := _number(payload.get(power_key))) is not None:
        state.power = power
    if (voltage := _number(payload.get("voltage"))) is not None:
        state.voltage = voltage
    if (current := _number(payload.get("current"))) is not None:
        state.current = current
    if (energy := _nested(payload, "aenergy", "total")) is not None:
        state.total_energy = energy
