"""
Jurisdiction Lookup
US states accepted for note validation and the region each one is validated under
"""

US_STATES = [
    "Alabama", "Alaska", "Arizona", "Arkansas", "California", "Colorado", "Connecticut", "Delaware",
    "Florida", "Georgia", "Hawaii", "Idaho", "Illinois", "Indiana", "Iowa", "Kansas", "Kentucky",
    "Louisiana", "Maine", "Maryland", "Massachusetts", "Michigan", "Minnesota", "Mississippi",
    "Missouri", "Montana", "Nebraska", "Nevada", "New Hampshire", "New Jersey", "New Mexico",
    "New York", "North Carolina", "North Dakota", "Ohio", "Oklahoma", "Oregon", "Pennsylvania",
    "Rhode Island", "South Carolina", "South Dakota", "Tennessee", "Texas", "Utah", "Vermont",
    "Virginia", "Washington", "West Virginia", "Wisconsin", "Wyoming",
]

UNKNOWN_REGION = "Unknown"

# States missing here (Alaska, Hawaii, Idaho, ...) resolve to UNKNOWN_REGION
STATE_TO_REGION = {
    # West
    "California": "West",
    "Oregon": "West",
    "Washington": "West",
    "Nevada": "West",
    # Southwest
    "Arizona": "Southwest",
    "Texas": "Southwest",
    "New Mexico": "Southwest",
    "Colorado": "Southwest",
    # Southeast
    "Florida": "Southeast",
    "Georgia": "Southeast",
    "North Carolina": "Southeast",
    "South Carolina": "Southeast",
    "Virginia": "Southeast",
    "Tennessee": "Southeast",
    "Kentucky": "Southeast",
    "Alabama": "Southeast",
    "Mississippi": "Southeast",
    "Louisiana": "Southeast",
    "Arkansas": "Southeast",
    # Midwest
    "Illinois": "Midwest",
    "Indiana": "Midwest",
    "Iowa": "Midwest",
    "Kansas": "Midwest",
    "Michigan": "Midwest",
    "Minnesota": "Midwest",
    "Missouri": "Midwest",
    "Nebraska": "Midwest",
    "North Dakota": "Midwest",
    "Ohio": "Midwest",
    "South Dakota": "Midwest",
    "Wisconsin": "Midwest",
    # Northeast
    "New York": "Northeast",
    "Pennsylvania": "Northeast",
    "New Jersey": "Northeast",
    "Connecticut": "Northeast",
    "Massachusetts": "Northeast",
    "Rhode Island": "Northeast",
    "Vermont": "Northeast",
    "New Hampshire": "Northeast",
    "Maine": "Northeast",
    "Maryland": "Northeast",
    "Delaware": "Northeast",
    "West Virginia": "Northeast",
}


def get_region_for_state(state: str) -> str:
    """Region for a state name; exact match, 'Unknown' otherwise."""
    if not state:
        return UNKNOWN_REGION
    return STATE_TO_REGION.get(state.strip(), UNKNOWN_REGION)
