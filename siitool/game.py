from collections import namedtuple

SaveSummary = namedtuple("SaveSummary", """
    total_fuel_litres
    total_fuel_cost
    total_fuel_visits
    total_xp
    total_distance
    cities_visited
    deliveries
""")

def field(instance, name, kind):
    try:
        value = instance.fields[name]
    except KeyError:
        raise KeyError("%s has no field %s" % (instance.struct_name, name)) from None
    if not isinstance(value, kind):
        raise TypeError("%s.%s is %s, expected %s" % (
            instance.struct_name, name, type(value).__name__, kind.__name__))
    return value

def single(document, name):
    instance = document.single(name)
    if instance is None:
        raise KeyError("save has no %s" % name)
    return instance

def summary(document):
    econ = single(document, "economy")
    dlog = single(document, "delivery_log")

    return SaveSummary(
        total_fuel_litres = field(econ, "total_fuel_litres", int),
        total_fuel_cost   = field(econ, "total_fuel_price", int),
        total_fuel_visits = field(econ, "gas_station_visit_count", int),
        total_xp          = field(econ, "experience_points", int),
        total_distance    = field(econ, "total_distance", int),
        cities_visited    = len(field(econ, "visited_cities", tuple)),
        deliveries        = len(field(dlog, "entries", tuple)),
    )

__all__ = ["SaveSummary", "summary"]
