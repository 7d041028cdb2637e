"""
Report value objects.

Fields are snake_case in Python and camelCase on the wire (alias generator),
matching the shape the dashboard frontend consumes. All reports are
ephemeral: recomputed per request or per cache window.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Trend = Literal["growing", "stable", "declining"]
Priority = Literal["high", "medium", "low"]


class CamelModel(BaseModel):
    """Base for report models serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ===== Dashboard =====


class TopCompany(CamelModel):
    name: Optional[str] = None
    count: int
    success_rate: float = 0


class TopJobTitle(CamelModel):
    title: Optional[str] = None
    count: int
    avg_score: float = 0


class TopPerformer(CamelModel):
    user_id: str
    user_name: str
    success_rate: float
    total_applications: int


class DemandedSkill(CamelModel):
    skill: str
    count: int
    avg_salary: float


class EmergingSkill(CamelModel):
    skill: str
    growth: float


class SkillGap(CamelModel):
    skill: str
    demand: int
    supply: int


class CityStat(CamelModel):
    city: str
    count: int
    avg_salary: float


class LocationTrend(CamelModel):
    location: str
    trend: Trend


class DashboardOverview(CamelModel):
    total_users: int
    total_applications: int
    total_profiles: int
    active_users: int
    application_success_rate: int
    average_application_score: int


class UserActivityMetrics(CamelModel):
    new_users_this_week: int
    new_users_this_month: int
    active_users_this_week: int
    active_users_this_month: int
    user_retention_rate: int


class ApplicationTrends(CamelModel):
    applications_this_week: int
    applications_this_month: int
    average_applications_per_user: int
    top_companies: List[TopCompany] = Field(default_factory=list)
    top_job_titles: List[TopJobTitle] = Field(default_factory=list)


class PerformanceMetrics(CamelModel):
    average_response_time: int
    average_interview_rate: int
    average_offer_rate: int
    top_performing_users: List[TopPerformer] = Field(default_factory=list)


class SkillsAnalytics(CamelModel):
    most_demanded_skills: List[DemandedSkill] = Field(default_factory=list)
    emerging_skills: List[EmergingSkill] = Field(default_factory=list)
    skills_gaps: List[SkillGap] = Field(default_factory=list)


class LocationAnalytics(CamelModel):
    top_cities: List[CityStat] = Field(default_factory=list)
    remote_jobs_percentage: int = 0
    location_trends: List[LocationTrend] = Field(default_factory=list)


class DashboardMetrics(CamelModel):
    overview: DashboardOverview
    user_activity: UserActivityMetrics
    application_trends: ApplicationTrends
    performance_metrics: PerformanceMetrics
    skills_analytics: SkillsAnalytics
    location_analytics: LocationAnalytics


# ===== User =====


class ApplicationMetrics(CamelModel):
    total_applications: int
    success_rate: int
    average_score: int
    response_rate: int
    interview_rate: int
    offer_rate: int


class ProfileMetrics(CamelModel):
    profile_views: int = 0
    profile_strength: int = 0
    search_ranking: int = 0
    completeness: int = 0


class StrongSkill(CamelModel):
    skill: Optional[str] = None
    proficiency: Optional[str] = None
    market_value: int


class SkillToImprove(CamelModel):
    skill: str
    importance: int
    current_level: str


class MarketDemandEntry(CamelModel):
    skill: str
    demand_level: Priority


class SkillsAnalysis(CamelModel):
    strongest_skills: List[StrongSkill] = Field(default_factory=list)
    skills_to_improve: List[SkillToImprove] = Field(default_factory=list)
    market_demand: List[MarketDemandEntry] = Field(default_factory=list)


class SalaryProjection(CamelModel):
    year: int
    projected_salary: int


class CitySalary(CamelModel):
    city: str
    average_salary: int
    is_user_location: bool = False


class LocationSalaryInsights(CamelModel):
    user_location_average: int
    country_average: int
    top_cities_in_country: List[CitySalary] = Field(default_factory=list)
    relative_position: str


class IndustryTrend(CamelModel):
    industry: str
    outlook: str
    growth: float


class CareerInsights(CamelModel):
    career_progression: List[str] = Field(default_factory=list)
    salary_projection: List[SalaryProjection] = Field(default_factory=list)
    location_salary_insights: Optional[LocationSalaryInsights] = None
    industry_trends: List[IndustryTrend] = Field(default_factory=list)


class TimelineEvent(CamelModel):
    date: Optional[datetime] = None
    action: str
    details: str
    impact: Literal["positive", "neutral", "negative"] = "neutral"


class Recommendation(CamelModel):
    priority: Priority
    category: Literal["profile", "applications", "skills", "networking"]
    title: str
    description: str
    action_items: List[str] = Field(default_factory=list)


class UserAnalytics(CamelModel):
    user_id: str
    application_metrics: ApplicationMetrics
    profile_metrics: ProfileMetrics
    skills_analysis: SkillsAnalysis
    career_insights: CareerInsights
    activity_timeline: List[TimelineEvent] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)


# ===== Company =====


class CompanyOverview(CamelModel):
    total_applications: int
    success_rate: int
    average_time_to_hire: int
    popularity_trend: Trend


class MonthlyHiring(CamelModel):
    month: str
    applications: int
    hires: int


class SeasonalPattern(CamelModel):
    quarter: str
    avg_applications: float


class RoleDemand(CamelModel):
    role: str
    applications: int
    difficulty: int


class HiringTrends(CamelModel):
    monthly_applications: List[MonthlyHiring] = Field(default_factory=list)
    seasonal_patterns: List[SeasonalPattern] = Field(default_factory=list)
    roles_demand: List[RoleDemand] = Field(default_factory=list)


class SkillFrequency(CamelModel):
    skill: str
    frequency: int


class LocationCount(CamelModel):
    location: str
    count: int


class CandidateInsights(CamelModel):
    top_skills: List[SkillFrequency] = Field(default_factory=list)
    experience_levels: List[Dict[str, Any]] = Field(default_factory=list)
    location_distribution: List[LocationCount] = Field(default_factory=list)


class Benchmarks(CamelModel):
    average_response_time: int
    industry_response_time: int
    success_rate: int
    industry_success_rate: int


class CompetitiveAnalysis(CamelModel):
    similar_companies: List[Dict[str, Any]] = Field(default_factory=list)
    benchmarks: Benchmarks


class CompanyAnalytics(CamelModel):
    company_name: str
    overview: CompanyOverview
    hiring_trends: HiringTrends
    candidate_insights: CandidateInsights
    competitive_analysis: CompetitiveAnalysis


# ===== Simple reports (HTTP surface) =====


class StatusBuckets(CamelModel):
    applied: int = 0
    interview: int = 0
    offer: int = 0
    rejected: int = 0


class SimpleApplicationStats(CamelModel):
    total: int
    by_status: StatusBuckets
    recent_applications: int
    average_response_time: int


class SimpleResumeStats(CamelModel):
    total: int
    created: int
    updated: int
    exported: int = 0


class SimpleActivity(CamelModel):
    last_login_at: Optional[datetime] = None
    total_sessions: int
    active_days: int
    account_age: int


class SimpleUserAnalytics(CamelModel):
    user_id: str
    applications: SimpleApplicationStats
    resumes: SimpleResumeStats
    activity: SimpleActivity


class CompanyCount(CamelModel):
    name: Optional[str] = None
    count: int


class SimpleDashboardOverview(CamelModel):
    total_applications: int
    total_resumes: int
    total_users: int
    active_users: int


class SimpleDashboardApplications(CamelModel):
    this_week: int
    this_month: int
    success_rate: float
    top_companies: List[CompanyCount] = Field(default_factory=list)
    status_distribution: StatusBuckets


class SimpleDashboardResumes(CamelModel):
    created: int
    exported: int = 0
    optimized: int = 0


class SimpleDashboardMetrics(CamelModel):
    overview: SimpleDashboardOverview
    applications: SimpleDashboardApplications
    resumes: SimpleDashboardResumes


class ResumeMetrics(CamelModel):
    total_resumes: int = 0
    average_score: int = 0
    completion_rate: int = 0
    last_updated: Optional[datetime] = None


class SkillCount(CamelModel):
    skill: str
    count: int


class ResumeSkillAnalysis(CamelModel):
    total_skills: int = 0
    top_skills: List[SkillCount] = Field(default_factory=list)
    skill_categories: Dict[str, List[str]] = Field(default_factory=dict)


class OptimizationSuggestion(CamelModel):
    type: str
    priority: Priority
    message: str


class ResumeAnalytics(CamelModel):
    resume_metrics: ResumeMetrics = Field(default_factory=ResumeMetrics)
    skill_analysis: ResumeSkillAnalysis = Field(default_factory=ResumeSkillAnalysis)
    optimization_suggestions: List[OptimizationSuggestion] = Field(default_factory=list)


class WeeklyActivity(CamelModel):
    date: str
    applications: int
    responses: int
    interviews: int


class SourceConversion(CamelModel):
    source: Optional[str] = None
    count: int
    conversion_rate: float


class CompanySuccess(CamelModel):
    company: Optional[str] = None
    applications: int
    success_rate: float


class SkillDemand(CamelModel):
    skill: str
    demand_score: float
    mentions: int


class MarketTrend(CamelModel):
    trend: str
    change_percentage: float
    current_applications: int
    previous_applications: int


class MonthlyStat(CamelModel):
    month: str
    applications: int
    interviews: int
    offers: int
    rejections: int


class FunnelStage(CamelModel):
    stage: str
    count: int
    percentage: int


class ProductionAnalytics(CamelModel):
    active_applications: int
    response_rate: float
    interview_rate: float
    offer_rate: float
    success_rate: float
    applications_over_time: List[WeeklyActivity] = Field(default_factory=list)
    applications_by_source: List[SourceConversion] = Field(default_factory=list)
    top_companies: List[CompanySuccess] = Field(default_factory=list)
    skill_demand: List[SkillDemand] = Field(default_factory=list)
    market_trends: List[MarketTrend] = Field(default_factory=list)
    monthly_stats: List[MonthlyStat] = Field(default_factory=list)
    conversion_funnel: List[FunnelStage] = Field(default_factory=list)
    applications_trend: float = 0
    response_rate_trend: float = 0
    interview_rate_trend: float = 0
    response_time_trend: int = 0


class UserLocation(CamelModel):
    city: Optional[str] = None
    country: Optional[str] = None


class CountryInfo(CamelModel):
    country: str
    total_cities_analyzed: int
    total_applications_in_country: int


class UserLocationData(CamelModel):
    user_location: Optional[UserLocation] = None
    location_comparison: List[Dict[str, Any]] = Field(default_factory=list)
    country_info: Optional[CountryInfo] = None


# ===== Market insights =====


class MarketInsight(CamelModel):
    type: Literal["trend", "opportunity", "risk", "recommendation"]
    title: str
    description: str
    impact: Priority
    action_required: bool
    data: Dict[str, Any] = Field(default_factory=dict)
    generated_at: datetime


class ProfileOptimization(CamelModel):
    area: str
    current_score: int
    target_score: int
    actions: List[str] = Field(default_factory=list)
    impact: str
    timeframe: str


class ApplicationStrategy(CamelModel):
    strategy: str
    current_rate: Optional[float] = None
    target_rate: Optional[float] = None
    tactics: List[str] = Field(default_factory=list)
    impact: str
    timeframe: str


class SkillDevelopmentPlan(CamelModel):
    skill: str
    priority: str
    current_level: str
    target_level: str
    resources: List[str] = Field(default_factory=list)
    timeframe: str
    potential_salary_increase: int


class MarketingTactic(CamelModel):
    tactic: str
    actions: List[str] = Field(default_factory=list)
    impact: str
    timeframe: str


class UserRecommendations(CamelModel):
    profile_optimizations: List[ProfileOptimization] = Field(default_factory=list)
    application_strategies: List[ApplicationStrategy] = Field(default_factory=list)
    skill_development: List[SkillDevelopmentPlan] = Field(default_factory=list)
    marketing_tactics: List[MarketingTactic] = Field(default_factory=list)

