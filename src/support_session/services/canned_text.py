"""Fixed texts the session authors itself."""
from __future__ import annotations

WELCOME = (
    "Bonjour ! Je suis votre assistant virtuel MyLb. "
    "Comment puis-je vous aider aujourd'hui ?"
)

HANDOFF = """✅ **Connexion établie avec notre support humain !**

👨‍💼 **Un conseiller MyLb spécialisé vous répondra dans les plus brefs délais.**

⏱️ **Temps d'attente estimé :** 2-3 minutes

📋 **Pour nous aider à vous assister rapidement :**
• Votre numéro de compte MyLb
• Une description détaillée du problème
• Les messages d'erreur éventuels
• La date et l'heure de l'incident

💡 **Pendant l'attente :**
Vous pouvez décrire votre problème en détail, notre expert le lira dès la prise en charge."""

ESCALATION_SUMMARY = "Nouvelle demande de support humain de {name} (client {participant_id})"

MAIL_SENT = """✅ **Votre email a été envoyé avec succès !**

📧 **Détails de l'envoi :**
• Sujet: {subject}
• Destinataire: mylbmakeyoulifebetter@gmail.com
• Email de réponse: {user_email}

💌 **Prochaines étapes :**
Notre équipe vous répondra dans les 24 heures à l'adresse {user_email}.

Merci pour votre patience !"""

MAIL_FAILED = """❌ **Échec de l'envoi de l'email**

Détail: {detail}

🔄 **Veuillez réessayer ou :**
• Contactez-nous directement à mylbmakeyoulifebetter@gmail.com
• Appelez le 01 23 45 67 89"""

MAIL_DEFAULT_SUBJECT = "Demande de support"
