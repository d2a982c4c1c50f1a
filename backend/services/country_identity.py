"""
Lead CRM - Identité pays

Les pays arrivent soit en code ISO ("DE"), soit en nom complet ("Germany").
Règle: une chaîne de 2 caractères = code ISO (table code -> nom), sinon nom.
Un code inconnu de la table est conservé tel quel.
"""

from typing import Dict, Optional

COUNTRY_CODE_TO_NAME: Dict[str, str] = {
    "DE": "Germany",
    "AT": "Austria",
    "CH": "Switzerland",
    "NL": "Netherlands",
    "BE": "Belgium",
    "FR": "France",
    "IT": "Italy",
    "ES": "Spain",
    "PT": "Portugal",
    "PL": "Poland",
    "CZ": "Czech Republic",
    "SK": "Slovakia",
    "HU": "Hungary",
    "RO": "Romania",
    "BG": "Bulgaria",
    "HR": "Croatia",
    "SI": "Slovenia",
    "GR": "Greece",
    "DK": "Denmark",
    "SE": "Sweden",
    "NO": "Norway",
    "FI": "Finland",
    "EE": "Estonia",
    "LV": "Latvia",
    "LT": "Lithuania",
    "IE": "Ireland",
    "GB": "United Kingdom",
    "LU": "Luxembourg",
}


class CountryIdentity:
    """Normalisation code/nom et comparaison de pays"""

    def __init__(self, code_to_name: Optional[Dict[str, str]] = None):
        table = COUNTRY_CODE_TO_NAME if code_to_name is None else code_to_name
        self._code_to_name = {code.upper(): name for code, name in table.items()}
        self._name_to_code = {name.lower(): code for code, name in self._code_to_name.items()}

    def normalize(self, identifier: str) -> str:
        """Retourne le nom canonique ("de" -> "Germany", "France" -> "France")"""
        if not identifier:
            return ""
        if not isinstance(identifier, str):
            raise TypeError(f"Identifiant pays illisible: {identifier!r}")
        identifier = identifier.strip()
        if len(identifier) == 2:
            return self._code_to_name.get(identifier.upper(), identifier)
        return identifier

    def to_code(self, identifier: str) -> str:
        """Nom -> code ISO si connu, sinon l'identifiant tel quel"""
        name = self.normalize(identifier)
        return self._name_to_code.get(name.lower(), identifier)

    def match(self, id_a: str, id_b: str) -> bool:
        if not id_a or not id_b:
            return False
        return self.normalize(id_a).lower() == self.normalize(id_b).lower()
