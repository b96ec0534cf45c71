"""Sample CodeRabbit review bodies shared by the parser and pipeline tests."""

NIT_WITH_DIFF = """\
**Actionable comments posted: 0**

<details>
<summary>🧹 Nitpick comments (1)</summary><blockquote>

<details>
<summary>src/app.py (1)</summary><blockquote>

`12-14`: **Collapse the nested ifs.**

The nested conditions can be merged into one.

```diff
-if a:
-    if b:
+if a and b:
```

</blockquote></details>

</blockquote></details>
"""

MULTI_SECTION = """\
<details>
<summary>♻️ Duplicate comments (1)</summary><blockquote>

<details>
<summary>lib/db.ts (1)</summary><blockquote>

`40`: **Query still runs inside the loop.**

Same as before: this is slow on large tables.

</blockquote></details>

</blockquote></details>

<details>
<summary>📜 Additional comments (2)</summary><blockquote>

<details>
<summary>lib/db.ts (1)</summary><blockquote>

`7-9`: **Nice use of the pool.**

---

Unrelated trailing text.

</blockquote></details>
<details>
<summary>README.md (1)</summary><blockquote>

`3`: **Typo in heading.**

</blockquote></details>

</blockquote></details>

<details>
<summary>⚠️ Outside diff range comments (1)</summary><blockquote>

`88`: **Possible SQL injection.**

User input reaches the query unescaped.

</blockquote></details>
"""
