"""
Synthetic data generator for local runs and tests.
Generates creators and crowdfunding campaigns for an empty store.
"""

import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
from uuid import uuid4

from src.data.models import Campaign, User

CHAINS = ["Ethereum", "Solana", "Bitcoin"]

FIRST_NAMES = [
    "Emma", "Liam", "Olivia", "Noah", "Ava", "Ethan", "Sophia", "Mason",
    "Isabella", "William", "Mia", "James", "Charlotte", "Oliver", "Amelia",
    "Benjamin", "Harper", "Elijah", "Evelyn", "Lucas", "Abigail", "Michael",
]

CITIES = [
    "Nairobi", "Lagos", "Lima", "Manila", "Dhaka", "Austin", "Detroit",
    "Oaxaca", "Kampala", "Hanoi", "Quito", "Accra", "Cusco", "Pune",
]

CAMPAIGN_TEMPLATES = {
    "education": [
        ("School Supplies for {city}", "Backpacks, books and tablets for students in {city} starting the new school year."),
        ("EdTech for All", "Bringing technology and coding classes to classrooms in {city} that have never had a computer lab."),
        ("Scholarships for {name}'s Class", "Covering tuition for first-generation students from {city}."),
    ],
    "healthcare": [
        ("Mobile Clinic in {city}", "A van-based clinic delivering checkups and vaccines to rural families around {city}."),
        ("Help {name} Recover", "Medical bills and physical therapy for {name} after a serious accident."),
    ],
    "environment": [
        ("Clean Water for {city}", "Drilling wells and installing filters so families in {city} have safe drinking water."),
        ("Replant the {city} Hills", "Planting 10,000 native trees to stop erosion around {city}."),
        ("Solar Panels for {city} Schools", "Renewable energy that cuts school power bills in {city}."),
    ],
    "animals": [
        ("{city} Animal Shelter Expansion", "More kennels and a vet room for rescued dogs and cats in {city}."),
        ("Wildlife Rescue Ambulance", "A dedicated vehicle for injured wildlife calls around {city}."),
    ],
    "community": [
        ("{city} Community Kitchen", "Hot meals every evening for neighbors facing food insecurity in {city}."),
        ("Youth Sports League in {city}", "Uniforms, fields and coaches for kids in {city}."),
    ],
    "technology": [
        ("Open Source Maps for {city}", "Volunteers mapping streets and clinics in {city} for disaster response."),
        ("Laptops for {name}'s Coding Club", "Refurbished laptops so teenagers can learn programming."),
    ],
}


class SyntheticDataGenerator:
    """Generates realistic synthetic creators and campaigns."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def generate_creator(self) -> User:
        name = self._rng.choice(FIRST_NAMES)
        suffix = self._rng.randint(10, 99)
        return User(
            id=f"creator_{uuid4().hex[:12]}",
            username=f"{name.lower()}{suffix}",
            email=f"{name.lower()}{suffix}@example.org",
            role="creator",
        )

    def generate_campaign(
        self,
        category: Optional[str] = None,
        creator_id: str = "",
        chains: Optional[List[str]] = None,
    ) -> Campaign:
        """Generate a single synthetic campaign."""
        if category is None:
            category = self._rng.choice(list(CAMPAIGN_TEMPLATES))
        title_template, description_template = self._rng.choice(CAMPAIGN_TEMPLATES[category])
        city = self._rng.choice(CITIES)
        name = self._rng.choice(FIRST_NAMES)

        goal = float(self._rng.choice([5000, 10000, 15000, 25000, 50000, 100000]))
        raised = round(goal * self._rng.uniform(0.05, 0.95), 2)
        if chains is None:
            chains = self._rng.sample(CHAINS, k=self._rng.randint(1, len(CHAINS)))

        return Campaign(
            id=f"campaign_{uuid4().hex[:12]}",
            title=title_template.format(city=city, name=name),
            description=description_template.format(city=city, name=name),
            category=category,
            goal=goal,
            raised=raised,
            chains=list(chains),
            creator_id=creator_id,
            created_at=datetime.now(timezone.utc) - timedelta(days=self._rng.randint(1, 180)),
        )

    def generate_dataset(
        self,
        num_creators: int = 4,
        num_campaigns: int = 12,
    ) -> Tuple[List[User], List[Campaign]]:
        """Generate creators and campaigns linked to them."""
        creators = [self.generate_creator() for _ in range(num_creators)]
        categories = list(CAMPAIGN_TEMPLATES)
        campaigns = []
        for i in range(num_campaigns):
            creator = creators[i % len(creators)] if creators else None
            campaigns.append(
                self.generate_campaign(
                    category=categories[i % len(categories)],
                    creator_id=creator.id if creator else "",
                )
            )
        return creators, campaigns
