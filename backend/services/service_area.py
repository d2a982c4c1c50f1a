"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Lead CRM - Zones de service partenaires                                     ║
║                                                                              ║
║  RÈGLES DE MATCHING (par côté: pickup, destination, nettoyage):             ║
║  1. Pays AVEC villes configurées -> seules ces villes comptent               ║
║     (pas de repli "tout le pays" pour ce pays)                               ║
║  2. Pays SANS ville -> simple appartenance du pays                           ║
║  3. Rayon 0 -> nom de ville exact uniquement                                 ║
║  4. Déménagement: pickup ET destination doivent matcher si les deux          ║
║     adresses sont renseignées (sinon un seul côté suffit)                    ║
║                                                                              ║
║  Formats stockés (résolus UNE fois à la lecture, resolve_service_areas):     ║
║  - {"Germany": {"type": "cities", "cities": {"Berlin": {"radius": 30}}}}     ║
║  - {"France": {"type": "country"}}                                           ║
║  - legacy: {"countries": [...], "citySettings": {"Germany-Berlin": {...}}}   ║
║  - legacy: {"citySettings": {"DE": ["Berlin", "Munich"]}}                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Any, Dict, List, Optional, NamedTuple

from models.lead import Address, LeadLocation, ServiceType
from models.partner import CitySetting, ServiceArea, ServiceAreaConfig
from services.country_identity import CountryIdentity
from services.errors import ServiceAreaFormatError
from services.geo_distance import GeoDistance

logger = logging.getLogger("service_area")

SIDES = ("pickup", "destination", "cleaning")
LEGACY_FLAT_KEYS = ("countries", "citySettings", "city_settings")


# ════════════════════════════════════════════════════════════════════════════
# RÉSOLUTION DES FORMATS STOCKÉS
# ════════════════════════════════════════════════════════════════════════════

def _radius(value: Any) -> float:
    if value is None:
        return 0
    if isinstance(value, dict):
        value = value.get("radius", 0)
    if value is None:
        return 0
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            raise ServiceAreaFormatError(f"Rayon invalide: {value!r}")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ServiceAreaFormatError(f"Rayon invalide: {value!r}")
    if value < 0:
        raise ServiceAreaFormatError(f"Rayon négatif: {value}")
    return value


def _country(value: Any, countries: CountryIdentity, context: str) -> str:
    if not isinstance(value, str):
        raise ServiceAreaFormatError(f"Pays illisible pour {context}: {value!r}")
    return countries.normalize(value)


def _city(value: Any, context: str) -> str:
    if not isinstance(value, str):
        raise ServiceAreaFormatError(f"Ville illisible pour {context}: {value!r}")
    return value


def _parse_flat(raw: Dict[str, Any], countries: CountryIdentity) -> ServiceArea:
    """Ancien format plat {countries, citySettings}"""
    country_list = raw.get("countries") or []
    if not isinstance(country_list, list):
        raise ServiceAreaFormatError("countries doit être une liste")

    names = [countries.normalize(c) for c in country_list if isinstance(c, str) and c]
    cities: List[CitySetting] = []

    city_settings = raw.get("citySettings", raw.get("city_settings")) or {}
    if not isinstance(city_settings, dict):
        raise ServiceAreaFormatError("citySettings doit être un objet")

    for key, value in city_settings.items():
        if "_radius" in key:
            continue

        if isinstance(value, list):
            # {"DE": ["Berlin", "Munich"]} -> rayon 0
            country = _country(key, countries, key)
            cities.extend(CitySetting(country=country, city=_city(city, key), radius=0) for city in value if city)
        elif isinstance(value, dict):
            if "-" in key:
                country_part, city = key.split("-", 1)
            else:
                country_part, city = "", key
            country = _country(value.get("country") or country_part, countries, key)
            if not country:
                raise ServiceAreaFormatError(f"Ville sans pays: {key}")
            cities.append(CitySetting(country=country, city=city, radius=_radius(value)))
        else:
            raise ServiceAreaFormatError(f"citySettings[{key}] illisible")

    for setting in cities:
        if setting.country.lower() not in (n.lower() for n in names):
            names.append(setting.country)

    return ServiceArea(countries=names, cities=cities)


def _parse_nested(raw: Dict[str, Any], countries: CountryIdentity) -> ServiceArea:
    """Format par pays {Pays: {type, cities}}"""
    names: List[str] = []
    cities: List[CitySetting] = []

    for country_key, config in raw.items():
        country = _country(country_key, countries, "service_area")
        if not country:
            raise ServiceAreaFormatError("Clé pays vide")
        names.append(country)

        if config is None or config is True or config == "country":
            continue
        if not isinstance(config, dict):
            raise ServiceAreaFormatError(f"Configuration illisible pour {country_key}")

        city_config = config.get("cities")
        if not city_config:
            # type "country", ou type "cities" sans ville -> pays entier
            continue

        if isinstance(city_config, dict):
            for city, city_cfg in city_config.items():
                cities.append(CitySetting(country=country, city=city, radius=_radius(city_cfg)))
        elif isinstance(city_config, list):
            for item in city_config:
                if isinstance(item, str):
                    cities.append(CitySetting(country=country, city=item, radius=0))
                elif isinstance(item, dict) and item.get("name"):
                    city = _city(item["name"], country_key)
                    cities.append(CitySetting(country=country, city=city, radius=_radius(item)))
                else:
                    raise ServiceAreaFormatError(f"Ville illisible pour {country_key}: {item!r}")
        else:
            raise ServiceAreaFormatError(f"cities illisible pour {country_key}")

    return ServiceArea(countries=names, cities=cities)


def parse_service_area(raw: Any, countries: CountryIdentity) -> ServiceArea:
    if raw is None or raw == {}:
        return ServiceArea()
    if not isinstance(raw, dict):
        raise ServiceAreaFormatError(f"Zone de service illisible: {type(raw).__name__}")
    if any(key in raw for key in LEGACY_FLAT_KEYS):
        return _parse_flat(raw, countries)
    return _parse_nested(raw, countries)


def _side_raw(block: Any, side: str) -> Optional[Any]:
    if block is None:
        return None
    if not isinstance(block, dict):
        raise ServiceAreaFormatError(f"preferences.{side} illisible")
    if "service_area" in block or "serviceArea" in block:
        return block.get("service_area", block.get("serviceArea"))
    if any(key in block for key in LEGACY_FLAT_KEYS):
        return block
    return None


def resolve_service_areas(preferences: Dict[str, Any], countries: CountryIdentity) -> ServiceAreaConfig:
    """
    Résout les préférences brutes d'un partenaire en zones par côté.

    Priorité par côté: preferences.<side>.service_area, puis l'ancien bloc
    preferences.moving (pickup/destination), puis preferences.service_area
    (zone unique pour tous les côtés).

    Raises:
        ServiceAreaFormatError si une zone est illisible
    """
    if preferences is None:
        return ServiceAreaConfig()
    if not isinstance(preferences, dict):
        raise ServiceAreaFormatError("preferences doit être un objet")

    shared = preferences.get("service_area", preferences.get("serviceArea"))
    moving = _side_raw(preferences.get("moving"), "moving")

    areas = {}
    for side in SIDES:
        raw = _side_raw(preferences.get(side), side)
        if raw is None and side != "cleaning" and moving is not None:
            logger.debug(f"[SERVICE_AREA] {side}: ancien bloc preferences.moving")
            raw = moving
        if raw is None:
            raw = shared
        areas[side] = parse_service_area(raw, countries)

    return ServiceAreaConfig(**areas)


# ════════════════════════════════════════════════════════════════════════════
# MATCHING
# ════════════════════════════════════════════════════════════════════════════

class LocationMatch(NamedTuple):
    pickup: bool
    destination: bool
    overall: bool


class ServiceAreaMatcher:
    """
    Décide si une adresse de lead tombe dans la zone d'un partenaire.
    Sans état: tables géo/pays injectées.
    """

    def __init__(self, geo: Optional[GeoDistance] = None, countries: Optional[CountryIdentity] = None):
        self.geo = geo or GeoDistance()
        self.countries = countries or CountryIdentity()

    def resolve(self, preferences: Dict[str, Any]) -> ServiceAreaConfig:
        return resolve_service_areas(preferences, self.countries)

    def _city_matches(self, setting: CitySetting, city: str, use_distance: bool) -> bool:
        if use_distance:
            return self.geo.is_within_radius(setting.city, city, setting.radius)

        # Nettoyage: inclusion de noms, rayon 0 = égalité stricte
        configured = setting.city.strip().lower()
        lead_city = city.strip().lower()
        if not (configured == lead_city or configured in lead_city or lead_city in configured):
            return False
        if setting.radius == 0:
            return configured == lead_city
        return True

    def address_matches(self, area: ServiceArea, address: Optional[Address], use_distance: bool = True) -> bool:
        if address is None or not address.has_location() or area.is_empty():
            return False

        country = self.countries.normalize(address.country)

        # Pays avec villes -> villes uniquement, pas de repli pays
        if country.lower() in area.countries_with_cities():
            return any(
                self._city_matches(setting, address.city, use_distance)
                for setting in area.cities_for(country)
            )

        return any(self.countries.match(name, country) for name in area.countries)

    def evaluate(self, config: ServiceAreaConfig, location: LeadLocation, service_type: ServiceType) -> LocationMatch:
        if service_type == ServiceType.CLEANING:
            address = location.service_address or location.pickup
            matched = self.address_matches(config.cleaning, address, use_distance=False)
            return LocationMatch(pickup=matched, destination=False, overall=matched)

        pickup_match = self.address_matches(config.pickup, location.pickup)
        destination_match = self.address_matches(config.destination, location.destination)

        has_pickup = location.pickup is not None and location.pickup.has_location()
        has_destination = location.destination is not None and location.destination.has_location()

        if has_pickup and has_destination:
            overall = pickup_match and destination_match
        else:
            # Lead legacy à une seule adresse
            overall = pickup_match or destination_match

        return LocationMatch(pickup=pickup_match, destination=destination_match, overall=overall)

    def matches(self, config: ServiceAreaConfig, location: LeadLocation, service_type: ServiceType) -> bool:
        return self.evaluate(config, location, service_type).overall
