"""OrbitOps Quickstart — screen two objects and size an avoidance burn."""

from datetime import timedelta

from orbitops import TLE, ManeuverConfig, ScreeningWindow, TrackedObject, plan, screen

# ISS (ZARYA) TLE
iss_tle = TLE.from_lines(
    "1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9993",
    "2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439596",
    name="ISS (ZARYA)",
)
iss = TrackedObject.from_tle(iss_tle)

print(f"Satellite: {iss.name}")
print(f"NORAD ID:  {iss.norad_id}")
print(f"Epoch:     {iss.epoch}")
print(f"Orbit:     {iss.perigee_km:.1f} x {iss.apogee_km:.1f} km, {iss.inclination_deg:.2f}°")

# CSS (TIANHE) shares the ISS altitude band
css_tle = TLE.from_lines(
    "1 48274U 21035A   24045.50261574  .00021540  00000-0  25163-3 0  9993",
    "2 48274  41.4681 279.1498 0005372 149.8847 345.3740 15.62096269157018",
    name="CSS (TIANHE)",
)
css = TrackedObject.from_tle(css_tle)

window = ScreeningWindow(
    start_time=iss.epoch,
    duration_seconds=timedelta(days=1).total_seconds(),
    step_seconds=60.0,
    miss_distance_threshold_km=500.0,
)
report = screen(iss, [css], window)
print(f"\n{len(report.events)} close approach(es) below {window.miss_distance_threshold_km} km")

for event in report.events:
    print(f"{event.tca} | {event.miss_distance_km:.2f} km | {event.relative_speed_km_s:.2f} km/s")
    solution = plan(event, iss, css, ManeuverConfig(safe_miss_distance_km=event.miss_distance_km + 1.0))
    if solution is None:
        print("  no maneuver possible within the delta-v cap")
    else:
        print(f"  {solution.direction.value} burn of {solution.delta_v_mps:.3f} m/s at {solution.burn_time}")
