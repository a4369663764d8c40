"""Bundled reference data: categories, activities, challenge templates and badges.

Factors are kg CO2e per unit. Carbon-saving actions carry negative factors,
measured against the common alternative (e.g. cycling instead of driving).
"""

CATEGORIES = [
    {"id": "transport", "name": "Transport", "icon": "car"},
    {"id": "food", "name": "Food", "icon": "utensils"},
    {"id": "energy", "name": "Home Energy", "icon": "bolt"},
    {"id": "consumption", "name": "Shopping", "icon": "bag"},
    {"id": "waste", "name": "Waste", "icon": "recycle"},
]

ACTIVITIES = [
    # Transport
    {"id": "car-petrol", "category_id": "transport", "name": "Drove (petrol car)", "carbon_per_unit": "0.21", "unit": "km"},
    {"id": "car-carpool", "category_id": "transport", "name": "Carpooled", "carbon_per_unit": "0.07", "unit": "km"},
    {"id": "bus", "category_id": "transport", "name": "Took the bus", "carbon_per_unit": "0.089", "unit": "km"},
    {"id": "train", "category_id": "transport", "name": "Took the train", "carbon_per_unit": "0.041", "unit": "km"},
    {"id": "flight-short", "category_id": "transport", "name": "Short-haul flight", "carbon_per_unit": "0.255", "unit": "km"},
    {"id": "cycling", "category_id": "transport", "name": "Cycled instead of driving", "carbon_per_unit": "-0.21", "unit": "km"},
    {"id": "walking", "category_id": "transport", "name": "Walked instead of driving", "carbon_per_unit": "-0.21", "unit": "km"},
    # Food
    {"id": "beef-meal", "category_id": "food", "name": "Beef meal", "carbon_per_unit": "7.7", "unit": "meal"},
    {"id": "chicken-meal", "category_id": "food", "name": "Chicken meal", "carbon_per_unit": "1.8", "unit": "meal"},
    {"id": "plant-based-meal", "category_id": "food", "name": "Plant-based meal", "carbon_per_unit": "-1.5", "unit": "meal"},
    {"id": "local-produce", "category_id": "food", "name": "Bought local produce", "carbon_per_unit": "-0.5", "unit": "kg"},
    # Energy
    {"id": "electricity", "category_id": "energy", "name": "Grid electricity", "carbon_per_unit": "0.233", "unit": "kWh"},
    {"id": "natural-gas", "category_id": "energy", "name": "Natural gas heating", "carbon_per_unit": "0.184", "unit": "kWh"},
    {"id": "line-dry", "category_id": "energy", "name": "Line-dried laundry", "carbon_per_unit": "-0.6", "unit": "load"},
    {"id": "thermostat-down", "category_id": "energy", "name": "Lowered thermostat 1 degree", "carbon_per_unit": "-0.4", "unit": "day"},
    # Consumption
    {"id": "new-clothing", "category_id": "consumption", "name": "Bought new clothing", "carbon_per_unit": "10", "unit": "item"},
    {"id": "secondhand", "category_id": "consumption", "name": "Bought second-hand", "carbon_per_unit": "-8", "unit": "item"},
    {"id": "refill-bottle", "category_id": "consumption", "name": "Used a refillable bottle", "carbon_per_unit": "-0.08", "unit": "refill"},
    # Waste
    {"id": "landfill", "category_id": "waste", "name": "Sent waste to landfill", "carbon_per_unit": "0.58", "unit": "kg"},
    {"id": "recycling", "category_id": "waste", "name": "Recycled", "carbon_per_unit": "-0.5", "unit": "kg"},
    {"id": "composting", "category_id": "waste", "name": "Composted", "carbon_per_unit": "-0.3", "unit": "kg"},
]

CHALLENGES = [
    {
        "id": "bike-week",
        "title": "Bike to Work Week",
        "description": "Log at least 3 transport trips this week, and make them count",
        "category_id": "transport",
        "metric": "category_specific",
        "target": "3",
        "duration_days": 7,
        "reward": "Cyclist badge",
        "icon": "bike",
        "prerequisites": ["car-petrol", "car-carpool"],
    },
    {
        "id": "public-transport",
        "title": "Public Transport Champion",
        "description": "Log 5 transport trips within a week",
        "category_id": "transport",
        "metric": "category_specific",
        "target": "5",
        "duration_days": 7,
        "reward": "Commuter badge",
        "icon": "bus",
        "prerequisites": ["car-petrol"],
    },
    {
        "id": "meatless-week",
        "title": "Plant-Based Week",
        "description": "Save 5.2 kg CO2e this week",
        "category_id": "food",
        "metric": "carbon_reduction",
        "target": "5.2",
        "duration_days": 7,
        "reward": "Plant Pioneer badge",
        "icon": "leaf",
        "prerequisites": ["beef-meal", "chicken-meal"],
    },
    {
        "id": "energy-saver",
        "title": "Energy Conservation Master",
        "description": "Save 3.4 kg CO2e within a week",
        "category_id": "energy",
        "metric": "carbon_reduction",
        "target": "3.4",
        "duration_days": 7,
        "reward": "Energy Saver badge",
        "icon": "bolt",
    },
    {
        "id": "eco-logger",
        "title": "Eco Logger",
        "description": "Log 10 activities within a week",
        "metric": "activity_count",
        "target": "10",
        "duration_days": 7,
        "reward": "50 eco points",
        "icon": "notebook",
    },
    {
        "id": "consistency-week",
        "title": "Seven Days Strong",
        "description": "Log something on 7 different days",
        "metric": "consistency_days",
        "target": "7",
        "duration_days": 7,
        "reward": "Consistency ribbon",
        "icon": "calendar",
    },
    {
        "id": "thirty-day-tracker",
        "title": "Thirty Day Tracker",
        "description": "Log activities on 25 days this month",
        "metric": "consistency_days",
        "target": "25",
        "duration_days": 30,
        "reward": "Monthly Master trophy",
        "icon": "trophy",
    },
]

BADGES = [
    {"id": "first-step", "name": "First Step", "description": "Log your first activity", "icon": "seedling",
     "criteria": {"metric": "activities_logged", "threshold": "1"}},
    {"id": "getting-started", "name": "Getting Started", "description": "Log your first 5 activities", "icon": "star",
     "criteria": {"metric": "activities_logged", "threshold": "5"}},
    {"id": "tracking-pro", "name": "Tracking Pro", "description": "Log 50 activities", "icon": "chart",
     "criteria": {"metric": "activities_logged", "threshold": "50"}},
    {"id": "data-master", "name": "Data Master", "description": "Log 200 activities", "icon": "chart-up",
     "criteria": {"metric": "activities_logged", "threshold": "200"}},
    {"id": "carbon-saver", "name": "Carbon Saver", "description": "Save 10 kg CO2e in total", "icon": "sprout",
     "criteria": {"metric": "carbon_saved", "threshold": "10"}},
    {"id": "climate-hero", "name": "Climate Hero", "description": "Save 100 kg CO2e in total", "icon": "hero",
     "criteria": {"metric": "carbon_saved", "threshold": "100"}},
    {"id": "eco-warrior", "name": "Eco Warrior", "description": "Save 500 kg CO2e in total", "icon": "trophy",
     "criteria": {"metric": "carbon_saved", "threshold": "500"}},
    {"id": "consistency-king", "name": "Consistency King", "description": "Log activities 7 days in a row", "icon": "calendar",
     "criteria": {"metric": "streak_days", "threshold": "7"}},
    {"id": "monthly-master", "name": "Monthly Master", "description": "Log activities 30 days in a row", "icon": "calendar-star",
     "criteria": {"metric": "streak_days", "threshold": "30"}},
    {"id": "challenger", "name": "Challenger", "description": "Complete your first challenge", "icon": "flag",
     "criteria": {"metric": "challenges_completed", "threshold": "1"}},
    {"id": "challenge-champion", "name": "Challenge Champion", "description": "Complete 5 challenges", "icon": "medal",
     "criteria": {"metric": "challenges_completed", "threshold": "5"}},
]
