"""
Automated market insights and per-user recommendation plans.

Both are derived from the cached dashboard (and, for recommendations, the
user's report) so they cost no extra queries while the caches are warm.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from src.common.error_handling import AnalyticsError, with_fallback

from .metrics import DEFAULT_SKILL_SALARY, utcnow
from .models import (
    ApplicationStrategy,
    DashboardMetrics,
    MarketingTactic,
    MarketInsight,
    ProfileOptimization,
    SkillDevelopmentPlan,
    UserAnalytics,
    UserRecommendations,
)
from .service import AnalyticsService

logger = logging.getLogger(__name__)

SATURATION_SUCCESS_RATE = 15
REMOTE_TREND_PERCENTAGE = 40
HIGH_COMPETITION_USERS = 50

MARKETING_TACTICS = [
    {
        "tactic": "LinkedIn Optimization",
        "actions": [
            "Update headline with target keywords",
            "Post weekly industry insights",
            "Engage with industry leaders",
        ],
        "impact": "High",
        "timeframe": "Ongoing",
    },
    {
        "tactic": "Portfolio Development",
        "actions": ["Create showcase projects", "Document case studies", "Add client testimonials"],
        "impact": "Medium",
        "timeframe": "1-2 months",
    },
    {
        "tactic": "Thought Leadership",
        "actions": ["Write technical blog posts", "Speak at meetups", "Contribute to open source"],
        "impact": "High",
        "timeframe": "3-6 months",
    },
]


class MarketInsightsService:
    """Turns dashboard and user reports into actionable insights."""

    def __init__(
        self,
        analytics: AnalyticsService,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.analytics = analytics
        self._clock = clock or utcnow

    @with_fallback("market insights", fallback_factory=lambda self, location=None: [])
    async def generate_automated_market_insights(self, location: Optional[str] = None) -> List[MarketInsight]:
        """
        Risk, opportunity and trend insights from the dashboard.

        `location` narrows the location insight to matching cities.
        """
        dashboard = await self.analytics.get_dashboard_metrics()
        now = self._clock()
        insights: List[MarketInsight] = []

        success_rate = dashboard.overview.application_success_rate
        if success_rate < SATURATION_SUCCESS_RATE:
            insights.append(MarketInsight(
                type="risk",
                title="High Market Saturation Detected",
                description=(
                    f"Current success rate is {success_rate}%, "
                    f"indicating highly competitive market conditions."
                ),
                impact="high",
                action_required=True,
                data={
                    "successRate": success_rate,
                    "recommendation": "Focus on niche skills and strategic targeting",
                    "affectedLocation": location or "all markets",
                },
                generated_at=now,
            ))

        gaps = dashboard.skills_analytics.skills_gaps[:3]
        if gaps:
            insights.append(MarketInsight(
                type="opportunity",
                title="Skills Gap Opportunities Identified",
                description=f"{len(gaps)} high-demand skills with limited supply detected.",
                impact="high",
                action_required=True,
                data={
                    "skillsGaps": [gap.to_response() for gap in gaps],
                    "potentialSalaryIncrease": sum(gap.demand * 1000 for gap in gaps),
                    "timeToCapitalize": "3-6 months",
                },
                generated_at=now,
            ))

        emerging = dashboard.skills_analytics.emerging_skills[:2]
        if emerging:
            insights.append(MarketInsight(
                type="trend",
                title="Emerging Technology Trends",
                description=f"{len(emerging)} emerging skills showing significant growth potential.",
                impact="medium",
                action_required=False,
                data={
                    "emergingSkills": [skill.to_response() for skill in emerging],
                    "averageGrowth": sum(skill.growth for skill in emerging) / len(emerging),
                    "opportunityWindow": "6-12 months",
                },
                generated_at=now,
            ))

        if location:
            matching = [
                city for city in dashboard.location_analytics.top_cities
                if location.lower() in city.city.lower()
            ]
            if matching:
                city = matching[0]
                insights.append(MarketInsight(
                    type="trend",
                    title=f"{location} Market Analysis",
                    description=(
                        f"Market analysis for {city.city} shows {city.count} job opportunities "
                        f"with average salary of ${city.avg_salary:,.0f}."
                    ),
                    impact="medium",
                    action_required=False,
                    data={
                        "location": city.city,
                        "jobCount": city.count,
                        "averageSalary": city.avg_salary,
                        "competitionLevel": "high" if city.count > HIGH_COMPETITION_USERS else "moderate",
                    },
                    generated_at=now,
                ))

        remote = dashboard.location_analytics.remote_jobs_percentage
        if remote > REMOTE_TREND_PERCENTAGE:
            insights.append(MarketInsight(
                type="trend",
                title="Remote Work Opportunity Growth",
                description=f"{remote}% of positions offer remote work options.",
                impact="medium",
                action_required=False,
                data={
                    "remotePercentage": remote,
                    "trend": "increasing",
                    "recommendation": "Consider remote-first job search strategy",
                },
                generated_at=now,
            ))

        return insights

    async def automate_user_recommendations(self, user_id: str) -> UserRecommendations:
        """
        Profile, application, skill and marketing plan for one user.

        Raises:
            AnalyticsError: If either underlying report cannot be computed
        """
        try:
            user, dashboard = await asyncio.gather(
                self.analytics.get_user_analytics(user_id),
                self.analytics.get_dashboard_metrics(),
            )
        except Exception as e:
            logger.error(f"Error generating automated recommendations for {user_id}: {e}")
            raise AnalyticsError("Failed to generate automated recommendations") from e

        return UserRecommendations(
            profile_optimizations=_profile_optimizations(user),
            application_strategies=_application_strategies(user),
            skill_development=_skill_development(dashboard),
            marketing_tactics=[MarketingTactic.model_validate(tactic) for tactic in MARKETING_TACTICS],
        )


def _profile_optimizations(user: UserAnalytics) -> List[ProfileOptimization]:
    profile = user.profile_metrics
    optimizations = []

    if profile.completeness < 90:
        optimizations.append(ProfileOptimization(
            area="Profile Completeness",
            current_score=profile.completeness,
            target_score=95,
            actions=["Add portfolio links", "Complete skills section", "Add detailed work history"],
            impact="High",
            timeframe="1-2 weeks",
        ))

    if profile.profile_strength < 85:
        optimizations.append(ProfileOptimization(
            area="Profile Strength",
            current_score=profile.profile_strength,
            target_score=90,
            actions=["Optimize headline", "Enhance professional summary", "Add testimonials"],
            impact="Medium",
            timeframe="1 week",
        ))

    return optimizations


def _application_strategies(user: UserAnalytics) -> List[ApplicationStrategy]:
    strategies = []
    response_rate = user.application_metrics.response_rate

    if response_rate < 25:
        strategies.append(ApplicationStrategy(
            strategy="Enhance Application Quality",
            current_rate=response_rate,
            target_rate=30,
            tactics=["Personalize cover letters", "Optimize resume keywords", "Research company culture"],
            impact="High",
            timeframe="2-3 weeks",
        ))

    strategies.append(ApplicationStrategy(
        strategy="Strategic Company Targeting",
        tactics=[
            "Target companies with >30% success rates",
            "Apply to growing companies",
            "Focus on series B-D startups",
        ],
        impact="Medium",
        timeframe="Ongoing",
    ))
    return strategies


def _skill_development(dashboard: DashboardMetrics) -> List[SkillDevelopmentPlan]:
    return [
        SkillDevelopmentPlan(
            skill=skill.skill,
            priority="High" if index < 2 else "Medium",
            current_level="To be assessed",
            target_level="Proficient",
            resources=["Online courses", "Practice projects", "Certification"],
            timeframe="3-6 months",
            potential_salary_increase=round((skill.avg_salary - DEFAULT_SKILL_SALARY) * 0.7),
        )
        for index, skill in enumerate(dashboard.skills_analytics.most_demanded_skills[:3])
    ]
