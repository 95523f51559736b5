"""DTEK regions and their subdomains.

Each region is served from its own site with its own session cookies
(``dtek-{code}``, ``_csrf-dtek-{code}``).
"""

from pydantic import BaseModel, ConfigDict


class Region(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    url: str
    # Used when the page lists streets as a flat array (single-city regions)
    default_city: str

    @property
    def template_url(self) -> str:
        return f"{self.url}/ua/shutdowns"

    @property
    def ajax_url(self) -> str:
        return f"{self.url}/ua/ajax"


REGIONS: dict[str, Region] = {
    "kem": Region(code="kem", name="Київ", url="https://www.dtek-kem.com.ua", default_city="м. Київ"),
    "krem": Region(
        code="krem",
        name="Київська область",
        url="https://www.dtek-krem.com.ua",
        default_city="Київська область",
    ),
    "oem": Region(
        code="oem", name="Одеська область", url="https://www.dtek-oem.com.ua", default_city="м. Одеса"
    ),
    "dnem": Region(
        code="dnem",
        name="Дніпропетровська область",
        url="https://www.dtek-dnem.com.ua",
        default_city="м. Дніпро",
    ),
    "dem": Region(
        code="dem",
        name="Донецька область",
        url="https://www.dtek-dem.com.ua",
        default_city="Донецька область",
    ),
}

DEFAULT_REGION = "kem"


def get_region(code: str) -> Region | None:
    """Look up a region by code, None if unknown."""
    return REGIONS.get(code)
