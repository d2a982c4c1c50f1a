"""
Lead CRM - Distance géographique entre villes

Table statique ville -> coordonnées (grandes villes européennes) et distance
haversine arrondie au kilomètre.

Une ville absente de la table n'est PAS une erreur: distance_km() retourne None
et l'appelant choisit son repli (comparaison de noms, voir service_area).
"""

import logging
from math import radians, sin, cos, atan2, sqrt
from typing import Dict, Optional, Tuple

logger = logging.getLogger("geo_distance")

EARTH_RADIUS_KM = 6371

CITY_COORDINATES: Dict[str, Tuple[float, float]] = {
    # Germany
    "Berlin": (52.5200, 13.4050),
    "Munich": (48.1351, 11.5820),
    "Hamburg": (53.5511, 9.9937),
    "Cologne": (50.9375, 6.9603),
    "Frankfurt": (50.1109, 8.6821),
    "Stuttgart": (48.7758, 9.1829),
    "Düsseldorf": (51.2277, 6.7735),
    "Dortmund": (51.5136, 7.4653),
    "Essen": (51.4556, 7.0116),
    "Leipzig": (51.3397, 12.3731),
    "Bremen": (53.0793, 8.8017),
    "Dresden": (51.0504, 13.7373),
    "Hanover": (52.3759, 9.7320),
    "Nuremberg": (49.4521, 11.0767),
    "Duisburg": (51.4344, 6.7623),
    "Bochum": (51.4818, 7.2162),
    "Wuppertal": (51.2562, 7.1508),
    "Bielefeld": (52.0302, 8.5325),
    "Bonn": (50.7374, 7.0982),
    "Münster": (51.9607, 7.6261),

    # Austria
    "Vienna": (48.2082, 16.3738),
    "Salzburg": (47.8095, 13.0550),
    "Innsbruck": (47.2692, 11.4041),
    "Graz": (47.0707, 15.4395),
    "Linz": (48.3069, 14.2858),

    # Switzerland
    "Zurich": (47.3769, 8.5417),
    "Geneva": (46.2044, 6.1432),
    "Basel": (47.5596, 7.5886),
    "Bern": (46.9481, 7.4474),
    "Lausanne": (46.5197, 6.6323),

    # Netherlands
    "Amsterdam": (52.3676, 4.9041),
    "Rotterdam": (51.9244, 4.4777),
    "The Hague": (52.0705, 4.3007),
    "Utrecht": (52.0907, 5.1214),
    "Eindhoven": (51.4416, 5.4697),

    # Belgium
    "Brussels": (50.8503, 4.3517),
    "Antwerp": (51.2194, 4.4025),
    "Ghent": (51.0543, 3.7174),
    "Charleroi": (50.4108, 4.4446),
    "Liège": (50.6326, 5.5797),

    # France
    "Paris": (48.8566, 2.3522),
    "Marseille": (43.2965, 5.3698),
    "Lyon": (45.7640, 4.8357),
    "Toulouse": (43.6047, 1.4442),
    "Nice": (43.7102, 7.2620),
    "Nantes": (47.2184, -1.5536),
    "Strasbourg": (48.5734, 7.7521),
    "Montpellier": (43.6110, 3.8767),

    # Italy
    "Rome": (41.9028, 12.4964),
    "Milan": (45.4642, 9.1900),
    "Naples": (40.8518, 14.2681),
    "Turin": (45.0703, 7.6869),
    "Palermo": (38.1157, 13.3615),
    "Genoa": (44.4056, 8.9463),
    "Bologna": (44.4949, 11.3426),
    "Florence": (43.7696, 11.2558),

    # Spain
    "Madrid": (40.4168, -3.7038),
    "Barcelona": (41.3851, 2.1734),
    "Valencia": (39.4699, -0.3763),
    "Seville": (37.3886, -5.9823),
    "Zaragoza": (41.6488, -0.8891),
    "Málaga": (36.7213, -4.4214),

    # United Kingdom
    "London": (51.5074, -0.1278),
    "Birmingham": (52.4862, -1.8904),
    "Manchester": (53.4808, -2.2426),
    "Glasgow": (55.8642, -4.2518),
    "Liverpool": (53.4084, -2.9916),
    "Leeds": (53.8008, -1.5491),

    # Poland
    "Warsaw": (52.2297, 21.0122),
    "Krakow": (50.0647, 19.9450),
    "Gdansk": (54.3520, 18.6466),
    "Wroclaw": (51.1079, 17.0385),
    "Poznan": (52.4064, 16.9252),
}


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> int:
    """Distance orthodromique (formule haversine), arrondie au km"""
    d_lat = radians(lat2 - lat1)
    d_lng = radians(lng2 - lng1)

    a = sin(d_lat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return int(EARTH_RADIUS_KM * c + 0.5)


class GeoDistance:
    """
    Distance entre villes nommées.

    La table est injectée (tests: table de fixtures), par défaut CITY_COORDINATES.
    Recherche insensible à la casse, sur le nom exact (après strip).
    """

    def __init__(self, coordinates: Optional[Dict[str, Tuple[float, float]]] = None):
        table = CITY_COORDINATES if coordinates is None else coordinates
        self._index = {name.strip().lower(): coords for name, coords in table.items()}

    def get_coordinates(self, city: str) -> Optional[Tuple[float, float]]:
        if not city:
            return None
        return self._index.get(city.strip().lower())

    def distance_km(self, city_a: str, city_b: str) -> Optional[int]:
        """
        Distance en km entre deux villes, None si l'une est inconnue de la table.
        """
        coords_a = self.get_coordinates(city_a)
        coords_b = self.get_coordinates(city_b)

        if coords_a is None or coords_b is None:
            return None

        return haversine_km(coords_a[0], coords_a[1], coords_b[0], coords_b[1])

    def is_within_radius(self, partner_city: str, lead_city: str, radius_km: float) -> bool:
        """
        La ville du lead est-elle dans le rayon de la ville configurée ?

        - radius 0 -> égalité exacte des noms (pas de calcul de distance)
        - distance inconnue -> repli sur inclusion de noms (a in b / b in a)
        """
        partner_lower = partner_city.strip().lower()
        lead_lower = lead_city.strip().lower()

        if radius_km == 0:
            return partner_lower == lead_lower

        distance = self.distance_km(partner_city, lead_city)

        if distance is None:
            logger.debug(
                f"[GEO] Distance inconnue {partner_city} <-> {lead_city}, repli sur les noms"
            )
            return partner_lower in lead_lower or lead_lower in partner_lower

        return distance <= radius_km


_default = GeoDistance()


def get_city_coordinates(city: str) -> Optional[Tuple[float, float]]:
    return _default.get_coordinates(city)


def is_city_within_radius(partner_city: str, lead_city: str, radius_km: float) -> bool:
    return _default.is_within_radius(partner_city, lead_city, radius_km)
