"""
Derivation helpers for analytics reports.

Pure functions over already-fetched documents and aggregation rows: rates,
trend deltas, top-N ranking, profile and resume scoring, skill extraction,
and the salary/market reference tables. Nothing here touches the database.
"""

import calendar
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

# ===== Status groups =====

SUCCESS_STATUSES = ("offer_accepted", "offer_received")
OFFER_STATUSES = ("offer_received", "offer_accepted", "offer_declined")
INTERVIEW_STATUSES = (
    "phone_screen",
    "technical_assessment",
    "first_interview",
    "second_interview",
    "final_interview",
)
INACTIVE_STATUSES = ("rejected", "withdrawn", "offer_declined", "offer_accepted")

# Coarse buckets used by the simple reports
SIMPLE_STATUS_BUCKETS = ("applied", "interview", "offer", "rejected")

TREND_GROWING = "growing"
TREND_STABLE = "stable"
TREND_DECLINING = "declining"

TOP_N_LIMIT = 10

# ===== Reference tables =====

SKILL_KEYWORDS = [
    "javascript", "python", "java", "react", "angular", "vue", "node.js", "typescript",
    "aws", "azure", "gcp", "docker", "kubernetes", "terraform", "jenkins",
    "sql", "postgresql", "mysql", "mongodb", "redis",
    "html", "css", "sass", "tailwind",
    "git", "github", "gitlab", "bitbucket",
    "rest", "api", "graphql", "microservices",
    "linux", "ubuntu", "centos",
    "agile", "scrum", "kanban",
    "machine learning", "artificial intelligence", "data science", "big data",
    "golang", "rust", "c++", "c#", "swift", "kotlin",
    "flutter", "react native", "ionic",
    "devops", "ci/cd", "automation", "testing",
    "blockchain", "ethereum", "solidity",
]

# Keywords scanned per user for the production skill-demand report
USER_SKILL_DEMAND_KEYWORDS = [
    "javascript", "python", "react", "node", "sql", "aws", "docker", "kubernetes",
    "java", "c++", "golang", "typescript", "vue", "angular", "mongodb", "postgresql",
    "machine learning", "artificial intelligence", "data science", "cloud computing",
]

# Growth rate (%) for technologies considered emerging, checked in order
EMERGING_TECH_GROWTH = [
    ("ai", 150), ("artificial intelligence", 150), ("machine learning", 140),
    ("rust", 120), ("golang", 110), ("kubernetes", 100),
    ("blockchain", 95), ("web3", 90), ("solidity", 85),
    ("flutter", 80), ("react native", 75), ("graphql", 70),
    ("terraform", 65), ("ansible", 60), ("elasticsearch", 55),
]

DEFAULT_EMERGING_SKILLS = [
    {"skill": "AI/ML Engineering", "growth": 125},
    {"skill": "Cloud Native Development", "growth": 95},
    {"skill": "DevSecOps", "growth": 75},
]

FALLBACK_SKILLS_ANALYTICS = {
    "mostDemandedSkills": [
        {"skill": "JavaScript", "count": 150, "avgSalary": 90000},
        {"skill": "Python", "count": 120, "avgSalary": 95000},
        {"skill": "React", "count": 100, "avgSalary": 88000},
    ],
    "emergingSkills": [
        {"skill": "AI/ML", "growth": 85},
        {"skill": "Cloud Architecture", "growth": 65},
        {"skill": "DevOps", "growth": 55},
    ],
    "skillsGaps": [
        {"skill": "Senior Developer", "demand": 80, "supply": 35},
        {"skill": "Data Engineering", "demand": 60, "supply": 25},
    ],
}

DEFAULT_SKILL_SALARY = 85000

COUNTRY_DEFAULT_SALARY = {
    "united states": 95000,
    "canada": 75000,
    "united kingdom": 65000,
    "germany": 70000,
    "australia": 85000,
    "india": 25000,
    "singapore": 80000,
    "netherlands": 75000,
    "sweden": 70000,
    "switzerland": 110000,
}
NO_COUNTRY_SALARY = 80000
UNKNOWN_COUNTRY_SALARY = 60000

HIGH_COST_CITY_MULTIPLIERS = {
    "san francisco": 1.4,
    "new york": 1.3,
    "london": 1.2,
    "zurich": 1.5,
    "singapore": 1.2,
    "tokyo": 1.1,
    "sydney": 1.1,
    "toronto": 1.1,
}

COUNTRY_MULTIPLIERS = {
    "united states": 1.1,
    "switzerland": 1.3,
    "singapore": 1.2,
    "australia": 1.05,
    "canada": 1.0,
    "united kingdom": 1.0,
    "germany": 1.0,
    "india": 0.9,
}

GLOBAL_TECH_HUBS = [
    {"city": "San Francisco", "averageSalary": 140000},
    {"city": "New York", "averageSalary": 130000},
    {"city": "Seattle", "averageSalary": 125000},
    {"city": "London", "averageSalary": 85000},
    {"city": "Toronto", "averageSalary": 85000},
    {"city": "Berlin", "averageSalary": 75000},
    {"city": "Amsterdam", "averageSalary": 80000},
    {"city": "Singapore", "averageSalary": 90000},
]

CAREER_PATH = ["Senior Developer", "Tech Lead", "Engineering Manager", "Director of Engineering"]

GLOBAL_INDUSTRY_TRENDS = [
    {"industry": "Technology", "outlook": "Strong growth expected", "growth": 15},
    {"industry": "Healthcare Tech", "outlook": "Rapid expansion", "growth": 22},
]

COUNTRY_INDUSTRY_TRENDS = {
    "united states": [
        {"industry": "AI/ML", "outlook": "Explosive growth", "growth": 35},
        {"industry": "Fintech", "outlook": "Steady expansion", "growth": 18},
        {"industry": "Healthcare Tech", "outlook": "Rapid growth", "growth": 25},
    ],
    "india": [
        {"industry": "Software Services", "outlook": "Stable growth", "growth": 12},
        {"industry": "Fintech", "outlook": "Booming sector", "growth": 30},
        {"industry": "Edtech", "outlook": "Strong growth", "growth": 20},
    ],
    "united kingdom": [
        {"industry": "Fintech", "outlook": "Leading sector", "growth": 22},
        {"industry": "Green Tech", "outlook": "Emerging rapidly", "growth": 28},
        {"industry": "Healthcare Tech", "outlook": "Steady growth", "growth": 15},
    ],
}

# Ordered (keywords, canonical title); first match wins
JOB_TITLE_RULES = [
    (("senior", "sr."), "Senior Developer"),
    (("lead", "principal"), "Lead Developer"),
    (("manager",), "Engineering Manager"),
    (("fullstack", "full stack"), "Full Stack Developer"),
    (("frontend", "front end"), "Frontend Developer"),
    (("backend", "back end"), "Backend Developer"),
    (("devops", "sre"), "DevOps Engineer"),
]

TECHNICAL_SKILL_KEYWORDS = ["javascript", "python", "react", "node", "sql", "aws", "docker", "git"]
SOFT_SKILL_KEYWORDS = ["communication", "leadership", "teamwork", "problem-solving", "management"]
LANGUAGE_KEYWORDS = ["english", "spanish", "french", "german", "chinese", "japanese"]

COMPANY_BENCHMARKS = {
    "industryResponseTime": 10,
    "industrySuccessRate": 12,
}


# ===== Rates and trends =====


def safe_rate(part: float, whole: float) -> float:
    """Percentage of part over whole; 0 when whole is 0 (never NaN)."""
    if not whole:
        return 0.0
    return part / whole * 100


def safe_ratio(part: float, whole: float) -> float:
    """Plain ratio of part over whole; 0 when whole is 0."""
    if not whole:
        return 0.0
    return part / whole


def round2(value: float) -> float:
    return round(value * 100) / 100


def trend_delta(recent: float, previous: float) -> float:
    """Percentage change from previous to recent; 0 when previous is 0."""
    if not previous:
        return 0.0
    return (recent - previous) / previous * 100


def classify_trend(recent: float, previous: float, threshold: float = 10) -> str:
    """
    Classify the change between two equal-length windows.

    growing when the delta exceeds +threshold %, declining below -threshold %,
    stable otherwise. A window with no previous activity but some recent
    activity is growing.
    """
    if not previous:
        return TREND_GROWING if recent > 0 else TREND_STABLE

    delta = trend_delta(recent, previous)
    if delta > threshold:
        return TREND_GROWING
    if delta < -threshold:
        return TREND_DECLINING
    return TREND_STABLE


def classify_popularity(recent: int, previous: int) -> str:
    """Company popularity: >1.2x previous is growing, <0.8x is declining."""
    if recent > previous * 1.2:
        return TREND_GROWING
    if recent < previous * 0.8:
        return TREND_DECLINING
    return TREND_STABLE


def rank_top_n(
    items: Iterable[Dict[str, Any]],
    key: str = "count",
    limit: int = TOP_N_LIMIT,
) -> List[Dict[str, Any]]:
    """
    Sort rows descending by `key` and keep the first `limit`.

    Python's sort is stable, so rows with equal keys keep their input order.
    """
    return sorted(items, key=lambda item: item.get(key) or 0, reverse=True)[:limit]


def average(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def utcnow() -> datetime:
    """Naive UTC now, comparable with the naive datetimes pymongo returns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def days_between(start: Optional[datetime], end: Optional[datetime]) -> int:
    """Whole days from start to end (floored); 0 when either is missing."""
    if not start or not end:
        return 0
    return int((end - start).total_seconds() // 86400)


# ===== Application helpers =====


def application_salary(application: Dict[str, Any]) -> float:
    """Best available salary figure: range max, total compensation, then range min."""
    compensation = application.get("compensation") or {}
    salary_range = compensation.get("salaryRange") or {}
    return (
        salary_range.get("max")
        or compensation.get("totalCompensation")
        or salary_range.get("min")
        or 0
    )


def has_inbound_communication(application: Dict[str, Any]) -> bool:
    return any(
        (comm or {}).get("direction") == "inbound"
        for comm in application.get("communications") or []
    )


def response_time_stats(applications: Sequence[Dict[str, Any]]) -> Dict[str, int]:
    """Average response time (days) plus interview and offer rates over all applications."""
    response_times = [
        (app.get("metrics") or {}).get("responseTime")
        for app in applications
        if (app.get("metrics") or {}).get("responseTime")
    ]
    total = len(applications)
    with_interviews = sum(1 for app in applications if app.get("interviews"))
    with_offers = sum(1 for app in applications if app.get("status") in OFFER_STATUSES)

    return {
        "average": round(average(response_times)),
        "interviewRate": round(safe_rate(with_interviews, total)),
        "offerRate": round(safe_rate(with_offers, total)),
    }


def average_response_days(applications: Sequence[Dict[str, Any]]) -> int:
    """
    Mean days between applying and the last update for applications that
    moved past "applied". Non-positive gaps are ignored.
    """
    gaps = []
    for app in applications:
        applied = app.get("applicationDate")
        if app.get("status") == "applied" or not applied:
            continue
        days = days_between(applied, app.get("updatedAt"))
        if days > 0:
            gaps.append(days)
    return round(average(gaps))


def bucket_statuses(statuses: Iterable[str]) -> Dict[str, int]:
    """Count statuses into the coarse applied / interview / offer / rejected buckets."""
    buckets = {name: 0 for name in SIMPLE_STATUS_BUCKETS}
    for status in statuses:
        if status in buckets:
            buckets[status] += 1
    return buckets


def time_to_hire_days(application: Dict[str, Any]) -> int:
    """Days from applicationDate to the offer_accepted statusHistory entry."""
    for entry in application.get("statusHistory") or []:
        if entry.get("status") == "offer_accepted":
            return days_between(application.get("applicationDate"), entry.get("date"))
    return 0


# ===== Skills =====


def extract_skills(text: Optional[str]) -> List[str]:
    """Keywords from SKILL_KEYWORDS found in the text, first letter capitalised."""
    if not text:
        return []
    lowered = text.lower()
    return [skill[0].upper() + skill[1:] for skill in SKILL_KEYWORDS if skill in lowered]


def demanded_skills(applications: Sequence[Dict[str, Any]]) -> Dict[str, Dict[str, float]]:
    """Skill -> {count, totalSalary, salaryCount} across job descriptions."""
    demand: Dict[str, Dict[str, float]] = {}
    for app in applications:
        salary = application_salary(app)
        for skill in extract_skills(app.get("jobDescription")):
            entry = demand.setdefault(skill, {"count": 0, "totalSalary": 0, "salaryCount": 0})
            entry["count"] += 1
            if salary > 0:
                entry["totalSalary"] += salary
                entry["salaryCount"] += 1
    return demand


def skill_supply(users: Sequence[Dict[str, Any]]) -> Counter:
    """Lower-cased technical skill name -> number of users listing it."""
    supply: Counter = Counter()
    for user in users:
        profile = user.get("profile") or {}
        for skill in profile.get("technicalSkills") or []:
            name = (skill or {}).get("name")
            if name:
                supply[name.lower()] += 1
    return supply


def most_demanded_skills(demand: Dict[str, Dict[str, float]], limit: int = TOP_N_LIMIT) -> List[Dict[str, Any]]:
    rows = [
        {
            "skill": skill,
            "count": int(data["count"]),
            "avgSalary": round(data["totalSalary"] / data["salaryCount"])
            if data["salaryCount"] else DEFAULT_SKILL_SALARY,
        }
        for skill, data in demand.items()
    ]
    return rank_top_n(rows, "count", limit)


def skills_gaps(
    demand: Dict[str, Dict[str, float]],
    supply: Counter,
    limit: int = TOP_N_LIMIT,
) -> List[Dict[str, Any]]:
    """High demand (>5 postings) with supply under half the demand, worst ratio first."""
    gaps = [
        {"skill": skill, "demand": int(data["count"]), "supply": supply.get(skill.lower(), 0)}
        for skill, data in demand.items()
    ]
    gaps = [gap for gap in gaps if gap["demand"] > 5 and gap["supply"] < gap["demand"] * 0.5]
    gaps.sort(key=lambda gap: gap["demand"] / max(gap["supply"], 1), reverse=True)
    return gaps[:limit]


def emerging_skills(demanded: Sequence[Dict[str, Any]], limit: int = 5) -> List[Dict[str, Any]]:
    """Demanded skills that match an emerging technology, with its growth rate."""
    found = []
    for row in demanded:
        lowered = row["skill"].lower()
        for tech, growth in EMERGING_TECH_GROWTH:
            if tech in lowered:
                found.append({"skill": row["skill"], "growth": growth})
                break

    if not found:
        found = [dict(skill) for skill in DEFAULT_EMERGING_SKILLS]
    return found[:limit]


def categorize_skills(skills: Iterable[str]) -> Dict[str, List[str]]:
    categories: Dict[str, List[str]] = {"technical": [], "soft": [], "languages": [], "other": []}
    for skill in skills:
        lowered = skill.lower()
        if any(keyword in lowered for keyword in TECHNICAL_SKILL_KEYWORDS):
            categories["technical"].append(skill)
        elif any(keyword in lowered for keyword in SOFT_SKILL_KEYWORDS):
            categories["soft"].append(skill)
        elif any(keyword in lowered for keyword in LANGUAGE_KEYWORDS):
            categories["languages"].append(skill)
        else:
            categories["other"].append(skill)
    return categories


def skill_name(skill: Any) -> Optional[str]:
    """Resume skills are stored either as strings or as {name: ...} objects."""
    if isinstance(skill, str):
        return skill
    if isinstance(skill, dict):
        return skill.get("name")
    return None


def skill_demand_for_applications(applications: Sequence[Dict[str, Any]], limit: int = TOP_N_LIMIT) -> List[Dict[str, Any]]:
    """Share of a user's applications mentioning each keyword in title or description."""
    total = len(applications)
    rows = []
    for skill in USER_SKILL_DEMAND_KEYWORDS:
        mentions = sum(
            1
            for app in applications
            if skill in (app.get("jobDescription") or "").lower()
            or skill in (app.get("jobTitle") or "").lower()
        )
        if mentions:
            rows.append({"skill": skill, "demandScore": safe_rate(mentions, total), "mentions": mentions})
    return rank_top_n(rows, "demandScore", limit)


def normalize_job_title(title: str) -> str:
    """Map a free-form job title onto a canonical role family."""
    lowered = (title or "").lower()
    for keywords, canonical in JOB_TITLE_RULES:
        if any(keyword in lowered for keyword in keywords):
            return canonical
    if "data" in lowered and "scientist" in lowered:
        return "Data Scientist"
    if "data" in lowered and "engineer" in lowered:
        return "Data Engineer"
    if "machine learning" in lowered or "ml engineer" in lowered:
        return "ML Engineer"
    return "Software Developer"


# ===== Profile scoring =====


def profile_strength(profile: Dict[str, Any]) -> int:
    score = 0
    if len(profile.get("headline") or "") > 30:
        score += 20
    if len(profile.get("bio") or "") > 200:
        score += 20
    if len(profile.get("technicalSkills") or []) >= 5:
        score += 25
    if (profile.get("yearsOfExperience") or 0) >= 3:
        score += 20
    if profile.get("linkedinUrl") or profile.get("githubUrl"):
        score += 15
    return min(score, 100)


def profile_completeness(profile: Dict[str, Any]) -> float:
    """Percentage of the eight core profile fields that are filled in."""
    fields = [
        profile.get("headline"),
        profile.get("bio"),
        (profile.get("currentLocation") or {}).get("city"),
        len(profile.get("preferredRoles") or []) > 0,
        len(profile.get("technicalSkills") or []) > 0,
        profile.get("yearsOfExperience") is not None,
        profile.get("linkedinUrl") or profile.get("githubUrl"),
        profile.get("expectedSalary"),
    ]
    return sum(1 for field in fields if field) / len(fields) * 100


def resume_score(resume: Dict[str, Any]) -> float:
    """
    Completeness score for one resume.

    Eleven completion factors scale to at most 70, content-richness bonuses
    add up to 30 more, capped at 100.
    """
    personal = resume.get("personalInfo") or {}
    summary = resume.get("summary") or resume.get("professionalSummary") or ""
    experience = resume.get("experience") or resume.get("workExperience") or []
    skills = resume.get("skills") or []
    projects = resume.get("projects") or []

    factors = [
        personal.get("firstName") and personal.get("lastName"),
        personal.get("email"),
        personal.get("phone"),
        len(summary) > 50,
        len(experience) > 0,
        len(resume.get("education") or []) > 0,
        len(skills) >= 3,
        len(projects) > 0,
        len(resume.get("certifications") or []) > 0,
        len(resume.get("languages") or []) > 0,
        bool(
            resume.get("achievements")
            or resume.get("publications")
            or resume.get("volunteerExperience")
        ),
    ]
    base = sum(1 for factor in factors if factor) / len(factors) * 70

    bonus = 0
    if len(summary) > 100:
        bonus += 5
    if len(skills) >= 8:
        bonus += 10
    if len(experience) >= 3:
        bonus += 10
    if len(projects) >= 2:
        bonus += 5

    return min(base + bonus, 100)


def average_resume_score(resumes: Sequence[Dict[str, Any]]) -> int:
    if not resumes:
        return 0
    return round(sum(resume_score(resume) for resume in resumes) / len(resumes))


def resume_is_complete(resume: Dict[str, Any]) -> bool:
    personal = resume.get("personalInfo") or {}
    experience = resume.get("workExperience") or resume.get("experience") or []
    return bool(
        personal.get("firstName")
        and personal.get("lastName")
        and personal.get("email")
        and (resume.get("professionalSummary") or resume.get("summary"))
        and experience
    )


# ===== Salary and market position =====


def default_salary_for_country(country: Optional[str]) -> int:
    if not country:
        return NO_COUNTRY_SALARY
    return COUNTRY_DEFAULT_SALARY.get(country.lower(), UNKNOWN_COUNTRY_SALARY)


def location_salary_multiplier(country: Optional[str], city: Optional[str] = None) -> float:
    """High-cost city multiplier if known, otherwise the country multiplier."""
    if not country:
        return 1.0
    if city and city.lower() in HIGH_COST_CITY_MULTIPLIERS:
        return HIGH_COST_CITY_MULTIPLIERS[city.lower()]
    return COUNTRY_MULTIPLIERS.get(country.lower(), 1.0)


def relative_market_position(user_salary: float, location_average: float) -> str:
    if user_salary > location_average * 1.2:
        return "Above Market"
    if user_salary > location_average * 0.8:
        return "Market Rate"
    return "Below Market"


def salary_projection(current_salary: float, multiplier: float, base_year: int) -> List[Dict[str, Any]]:
    return [
        {"year": base_year, "projectedSalary": round(current_salary)},
        {"year": base_year + 1, "projectedSalary": round(current_salary * 1.08 * multiplier)},
        {"year": base_year + 2, "projectedSalary": round(current_salary * 1.18 * multiplier)},
    ]


def industry_trends_for_country(country: Optional[str]) -> List[Dict[str, Any]]:
    if not country:
        return [dict(trend) for trend in GLOBAL_INDUSTRY_TRENDS]
    trends = COUNTRY_INDUSTRY_TRENDS.get(country.lower(), GLOBAL_INDUSTRY_TRENDS)
    return [dict(trend) for trend in trends]


def career_path(preferred_roles: Optional[Sequence[str]] = None) -> List[str]:
    return list(CAREER_PATH)


def location_salary_data(
    applications: Sequence[Dict[str, Any]],
    country: Optional[str],
    city: Optional[str],
) -> Dict[str, Any]:
    """
    City and country salary averages plus a five-city comparison.

    The user's city is listed first; the remaining slots are the best-paid
    cities in the same country, padded with global tech hubs.
    """
    city_salaries: Dict[str, Dict[str, Any]] = {}
    country_salaries: Dict[str, List[float]] = {}

    for app in applications:
        salary = application_salary(app)
        location = app.get("jobLocation") or {}
        app_city, app_country = location.get("city"), location.get("country")
        if salary > 0 and app_city and app_country:
            city_salaries.setdefault(app_city, {"salaries": [], "country": app_country})
            city_salaries[app_city]["salaries"].append(salary)
            country_salaries.setdefault(app_country, []).append(salary)

    fallback = default_salary_for_country(country)
    city_data = city_salaries.get(city) if city else None
    user_city_average = round(average(city_data["salaries"])) if city_data else fallback
    country_values = country_salaries.get(country) if country else None
    country_average = round(average(country_values)) if country_values else fallback

    all_cities = [
        {
            "city": name,
            "averageSalary": round(average(data["salaries"])),
            "isUserLocation": bool(city) and name.lower() == city.lower(),
        }
        for name, data in city_salaries.items()
        if not country or data["country"].lower() == country.lower()
    ]
    all_cities.sort(key=lambda row: row["averageSalary"], reverse=True)

    top_cities = [row for row in all_cities if row["isUserLocation"]]
    top_cities += [row for row in all_cities if not row["isUserLocation"]][:4]

    if city and not any(row["isUserLocation"] for row in top_cities):
        top_cities.insert(0, {"city": city, "averageSalary": user_city_average, "isUserLocation": True})
        top_cities = top_cities[:5]

    if len(top_cities) < 5:
        existing = {row["city"].lower() for row in top_cities}
        for hub in GLOBAL_TECH_HUBS:
            if len(top_cities) >= 5:
                break
            if hub["city"].lower() not in existing:
                top_cities.append({**hub, "isUserLocation": False})

    return {
        "userCityAverage": user_city_average,
        "countryAverage": country_average,
        "topCities": top_cities,
    }


def location_key(location: Dict[str, Any]) -> Optional[str]:
    """'City, Country' when the city is known, else just the country."""
    city, country = location.get("city"), location.get("country")
    if city:
        return f"{city}, {country}"
    return country


# ===== Company breakdowns =====


def monthly_hiring(applications: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Applications and hires per YYYY-MM, oldest first."""
    months: Dict[str, Dict[str, int]] = {}
    for app in applications:
        applied = app.get("applicationDate")
        if not applied:
            continue
        month = applied.strftime("%Y-%m")
        row = months.setdefault(month, {"applications": 0, "hires": 0})
        row["applications"] += 1
        if app.get("status") == "offer_accepted":
            row["hires"] += 1
    return [{"month": month, **months[month]} for month in sorted(months)]


def quarterly_patterns(monthly: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Average monthly applications per calendar quarter."""
    quarters: Dict[str, List[int]] = {}
    for row in monthly:
        quarter = f"Q{(int(row['month'][5:7]) - 1) // 3 + 1}"
        quarters.setdefault(quarter, []).append(row["applications"])
    return [
        {"quarter": quarter, "avgApplications": round(average(counts), 2)}
        for quarter, counts in sorted(quarters.items())
    ]


def roles_demand(applications: Sequence[Dict[str, Any]], limit: int = TOP_N_LIMIT) -> List[Dict[str, Any]]:
    """
    Applications per normalised role with a difficulty score
    (100 minus the role's success rate).
    """
    roles: Dict[str, Dict[str, int]] = {}
    for app in applications:
        role = normalize_job_title(app.get("jobTitle") or "")
        row = roles.setdefault(role, {"applications": 0, "successful": 0})
        row["applications"] += 1
        if app.get("status") in SUCCESS_STATUSES:
            row["successful"] += 1
    rows = [
        {
            "role": role,
            "applications": data["applications"],
            "difficulty": round(100 - safe_rate(data["successful"], data["applications"])),
        }
        for role, data in roles.items()
    ]
    return rank_top_n(rows, "applications", limit)


def top_skill_frequencies(applications: Sequence[Dict[str, Any]], limit: int = TOP_N_LIMIT) -> List[Dict[str, Any]]:
    counts: Counter = Counter()
    for app in applications:
        counts.update(extract_skills(app.get("jobDescription")))
    rows = [{"skill": skill, "frequency": count} for skill, count in counts.items()]
    return rank_top_n(rows, "frequency", limit)


def location_distribution(applications: Sequence[Dict[str, Any]], limit: int = TOP_N_LIMIT) -> List[Dict[str, Any]]:
    counts: Dict[str, int] = {}
    for app in applications:
        location = app.get("jobLocation") or {}
        if location.get("remote"):
            key = "Remote"
        else:
            key = location_key(location)
        if key:
            counts[key] = counts.get(key, 0) + 1
    rows = [{"location": key, "count": count} for key, count in counts.items()]
    return rank_top_n(rows, "count", limit)


def group_count(values: Iterable[Any]) -> Dict[Any, int]:
    """Insertion-ordered occurrence counts."""
    counts: Dict[Any, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return counts


def filter_by_date(
    documents: Iterable[Dict[str, Any]],
    field: str,
    since: datetime,
    until: Optional[datetime] = None,
    predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
) -> List[Dict[str, Any]]:
    """Documents whose `field` falls in [since, until)."""
    rows = []
    for doc in documents:
        value = doc.get(field)
        if not value or value < since:
            continue
        if until is not None and value >= until:
            continue
        if predicate is not None and not predicate(doc):
            continue
        rows.append(doc)
    return rows
