from datetime import date

from venn_sky.models import ComparisonReport, ProfileBasic


def _profile_line(p: ProfileBasic) -> str:
    if p.display_name:
        return f"- **{p.display_name}** (@{p.handle})"
    return f"- @{p.handle}"


def format_comparison_report(report: ComparisonReport, show: int = 20) -> str:
    """Format a ComparisonReport into a Markdown report string.

    At most `show` accounts are listed per section; the rest are summarised.
    """
    overlap = report.overlap
    handles = ", ".join(f"@{u.handle}" for u in report.users)
    sections = [f"# Venn Sky: {report.kind}\n\n*{handles} · generated {date.today()}*\n"]

    sections.append("## Accounts\n")
    sections.append(f"| Handle | Name | Followers | Following | {report.kind.title()} fetched |")
    sections.append("|---|---|---|---|---|")
    for user, count in zip(report.users, overlap.counts):
        p = user.profile
        followers = p.followers_count if p.followers_count is not None else "N/A"
        follows = p.follows_count if p.follows_count is not None else "N/A"
        sections.append(f"| @{user.handle} | {p.display_name or ''} | {followers} | {follows} | {count} |")
    sections.append("")

    sections.append(f"## In common ({len(overlap.overlapping)})\n")
    sections.extend(_profile_line(p) for p in overlap.overlapping[:show])
    if len(overlap.overlapping) > show:
        sections.append(f"- *…and {len(overlap.overlapping) - show} more*")
    sections.append("")

    for user, unique in zip(report.users, overlap.unique_to_each):
        sections.append(f"## Only @{user.handle} ({len(unique)})\n")
        sections.extend(_profile_line(p) for p in unique[:show])
        if len(unique) > show:
            sections.append(f"- *…and {len(unique) - show} more*")
        sections.append("")

    return "\n".join(sections)
