"""防衛技術タグ（静的カタログ）と、ファイル名・タイトルからの推定。"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

# カテゴリの表示優先度（小さいほど先に並ぶ）
CATEGORY_PRIORITY: dict[str, int] = {
    "missile_defense": 1,
    "air_defense": 2,
    "nuclear": 3,
    "c4isr": 4,
    "ai_tech": 5,
    "cyber": 6,
    "space": 7,
    "naval": 8,
    "ground": 9,
    "intelligence": 10,
    "simulation": 11,
    "logistics": 12,
    "international": 13,
    "policy": 14,
    "other": 15,
}


@dataclass(frozen=True)
class TechTag:
    id: str
    name_ja: str
    name_en: str
    color: str
    bg_color: str
    border_color: str
    category: str
    description: str = ""

    @property
    def priority(self) -> int:
        return CATEGORY_PRIORITY.get(self.category, CATEGORY_PRIORITY["other"])

    def name(self, lang: str = "ja") -> str:
        return self.name_en if lang == "en" else self.name_ja


def _tag(tag_id, name_ja, name_en, tone, category, description=""):
    # tone: ("red", "800", "50", "200") → text-red-800 / bg-red-50 / border-red-200
    hue, text_lv, bg_lv, border_lv = tone
    return TechTag(
        id=tag_id,
        name_ja=name_ja,
        name_en=name_en,
        color=f"text-{hue}-{text_lv}",
        bg_color=f"bg-{hue}-{bg_lv}",
        border_color=f"border-{hue}-{border_lv}",
        category=category,
        description=description,
    )


TECH_TAGS: dict[str, TechTag] = {
    t.id: t
    for t in [
        # ミサイル防衛
        _tag("missile_defense", "ミサイル防衛", "Missile Defense", ("red", "800", "50", "200"), "missile_defense"),
        _tag("iamd", "IAMD", "IAMD", ("red", "700", "100", "300"), "missile_defense",
             "Integrated Air and Missile Defense"),
        _tag("golden_dome", "ゴールデン・ドーム", "Golden Dome", ("yellow", "800", "50", "200"), "missile_defense"),
        # C4ISR・情報通信
        _tag("c4isr", "C4ISR", "C4ISR", ("blue", "800", "50", "200"), "c4isr",
             "Command, Control, Communications, Computers, Intelligence, Surveillance and Reconnaissance"),
        _tag("ict", "ICT", "ICT", ("blue", "700", "100", "300"), "c4isr", "Information and Communication Technology"),
        _tag("next_gen_comm", "次世代通信", "Next-Gen Communications", ("indigo", "800", "50", "200"), "c4isr"),
        # AI・先端技術
        _tag("ai", "AI", "Artificial Intelligence", ("purple", "800", "50", "200"), "ai_tech"),
        _tag("advanced_tech", "先端技術", "Advanced Technology", ("purple", "700", "100", "300"), "ai_tech"),
        _tag("machine_learning", "機械学習", "Machine Learning", ("violet", "800", "50", "200"), "ai_tech"),
        # サイバー
        _tag("cyber_security", "サイバーセキュリティ", "Cybersecurity", ("green", "800", "50", "200"), "cyber"),
        _tag("cyber_warfare", "サイバー戦", "Cyber Warfare", ("emerald", "800", "50", "200"), "cyber"),
        # 宇宙
        _tag("space_defense", "宇宙防衛", "Space Defense", ("indigo", "800", "50", "200"), "space"),
        _tag("satellite", "衛星技術", "Satellite Technology", ("sky", "800", "50", "200"), "space"),
        # インテリジェンス
        _tag("intelligence", "インテリジェンス", "Intelligence", ("slate", "800", "50", "200"), "intelligence"),
        _tag("sigint", "SIGINT", "SIGINT", ("gray", "800", "50", "200"), "intelligence", "Signals Intelligence"),
        # 国際関係
        _tag("international_affairs", "国際情勢", "International Affairs", ("orange", "800", "50", "200"),
             "international"),
        _tag("geopolitics", "地政学", "Geopolitics", ("amber", "800", "50", "200"), "international"),
        # 政策・戦略
        _tag("defense_policy", "防衛政策", "Defense Policy", ("rose", "800", "50", "200"), "policy"),
        _tag("strategy", "戦略", "Strategy", ("pink", "800", "50", "200"), "policy"),
        # 航空防衛
        _tag("air_defense", "航空防衛", "Air Defense", ("sky", "800", "50", "200"), "air_defense"),
        _tag("fighter_aircraft", "戦闘機", "Fighter Aircraft", ("sky", "700", "100", "300"), "air_defense"),
        _tag("radar", "レーダー", "Radar", ("cyan", "800", "50", "200"), "air_defense"),
        # 海上・海洋
        _tag("naval_systems", "海上システム", "Naval Systems", ("teal", "800", "50", "200"), "naval"),
        _tag("submarine", "潜水艦", "Submarine", ("teal", "700", "100", "300"), "naval"),
        _tag("anti_ship", "対艦ミサイル", "Anti-Ship Missile", ("emerald", "700", "50", "200"), "naval"),
        # 陸上
        _tag("ground_systems", "陸上システム", "Ground Systems", ("lime", "800", "50", "200"), "ground"),
        _tag("artillery", "砲兵", "Artillery", ("lime", "700", "100", "300"), "ground"),
        _tag("armored_vehicle", "装甲車両", "Armored Vehicle", ("green", "700", "100", "300"), "ground"),
        # 核
        _tag("nuclear_tech", "核技術", "Nuclear Technology", ("red", "900", "50", "300"), "nuclear"),
        _tag("nuclear_weapon", "核兵器", "Nuclear Weapon", ("red", "800", "100", "400"), "nuclear"),
        _tag("nonproliferation", "核不拡散", "Nuclear Nonproliferation", ("orange", "800", "50", "200"), "nuclear"),
        # ロジスティクス
        _tag("logistics", "ロジスティクス", "Logistics", ("amber", "800", "50", "200"), "logistics"),
        _tag("supply_chain", "サプライチェーン", "Supply Chain", ("yellow", "800", "50", "200"), "logistics"),
        # シミュレーション
        _tag("simulation", "シミュレーション", "Simulation", ("neutral", "800", "50", "200"), "simulation"),
        _tag("digital_twin", "デジタルツイン", "Digital Twin", ("stone", "800", "50", "200"), "simulation"),
    ]
}

# 汎用キーワード → タグID（基本タグの語彙とは別テーブル）
KEYWORD_TAG_MAP: dict[str, list[str]] = {
    "ミサイル": ["missile_defense"],
    "missile": ["missile_defense"],
    "iamd": ["iamd", "missile_defense"],
    "c4isr": ["c4isr"],
    "ict": ["ict"],
    "情報通信": ["ict", "c4isr"],
    "ai": ["ai"],
    "人工知能": ["ai"],
    "機械学習": ["machine_learning"],
    "サイバー": ["cyber_security"],
    "cyber": ["cyber_security"],
    "宇宙": ["space_defense"],
    "space": ["space_defense"],
    "衛星": ["satellite"],
    "satellite": ["satellite"],
    "インテリジェンス": ["intelligence"],
    "intelligence": ["intelligence"],
    "国際": ["international_affairs"],
    "international": ["international_affairs"],
    "地政学": ["geopolitics"],
    "geopolitics": ["geopolitics"],
    "防衛政策": ["defense_policy"],
    "policy": ["defense_policy"],
    "戦略": ["strategy"],
    "strategy": ["strategy"],
}

PRIMARY_TAG_LIMIT = 3


def infer_tech_tags(file_name: str, title: str, existing_tags: Iterable[str] = ()) -> list[str]:
    """ファイル名・タイトル・既存タグから技術タグIDを推定する（重複なし、出現順）。"""
    text = f"{file_name} {title} {' '.join(existing_tags)}".lower()
    ids: list[str] = []

    # 記事シリーズ固有のまとまり
    if "golden" in text or "ゴールデン" in text or "dome" in text:
        ids += ["golden_dome", "missile_defense", "iamd"]
    if "mod" in text and "ai" in text:
        ids += ["ai", "advanced_tech", "ict"]
    if "defense" in text and "info" in text:
        ids += ["c4isr", "ict", "next_gen_comm"]
    if any(k in text for k in ("iran", "israel", "イラン", "イスラエル")):
        ids += ["international_affairs", "geopolitics", "intelligence"]

    for keyword, tag_ids in KEYWORD_TAG_MAP.items():
        if keyword in text:
            ids += tag_ids

    return list(dict.fromkeys(ids))


def get_tech_tag(tag_id: str) -> TechTag | None:
    return TECH_TAGS.get(tag_id)


def get_tech_tags(tag_ids: Iterable[str]) -> list[TechTag]:
    """未知のIDは捨てる。並びは日本語名順。"""
    tags = [TECH_TAGS[i] for i in tag_ids if i in TECH_TAGS]
    return sorted(tags, key=lambda t: t.name_ja)


def sort_tech_tags(tags: Iterable[TechTag]) -> list[TechTag]:
    # カテゴリ優先度 → 日本語名
    return sorted(tags, key=lambda t: (t.priority, t.name_ja))


def primary_tech_tags(tag_ids: Iterable[str], limit: int = PRIMARY_TAG_LIMIT) -> list[str]:
    return [t.id for t in sort_tech_tags(get_tech_tags(tag_ids))[:limit]]
